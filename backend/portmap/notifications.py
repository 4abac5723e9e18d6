"""Transient notification payloads shown by the dashboard.

Texts default to the pt-BR wording of the dashboard and can be overridden
per key through ``messages.yaml`` in the config directory.
"""
import logging

from portmap.config import load_messages
from portmap.errors import PortmapError, ValidationError
from portmap.models import Notification

logger = logging.getLogger(__name__)

DEFAULT_MESSAGES: dict[str, dict[str, str]] = {
    # Switch registry
    "switch_created": {"title": "Sucesso", "description": 'Switch "{name}" adicionado!'},
    "switch_updated": {"title": "Sucesso", "description": 'Switch "{name}" atualizado!'},
    "switch_deleted": {"title": "Sucesso", "description": 'Switch "{name}" removido!'},
    "switch_data_updated": {"title": "Sucesso!", "description": 'Switch "{name}" atualizado.'},
    "ports_added": {"title": "Sucesso", "description": "{count} portas adicionadas ao {name}!"},
    "switch_selected": {"title": "Switch selecionado", "description": 'Exibindo "{name}".'},
    "refresh_started": {"title": "Atualizando", "description": "Verificando status das portas do {name}..."},
    "refresh_done": {"title": "Atualizado", "description": "Status das portas do {name} verificado! (Simulado)"},
    "data_reloaded": {"title": "Atualizado", "description": "{count} switches sincronizados."},
    # Failures by operation
    "list_failed": {
        "title": "Erro ao carregar dados",
        "description": "Não foi possível buscar os switches do banco de dados. {message}",
    },
    "create_failed": {
        "title": "Erro ao adicionar switch",
        "description": "Não foi possível adicionar o novo switch. {message}",
    },
    "edit_failed": {"title": "Erro ao editar switch", "description": "Não foi possível editar o switch. {message}"},
    "delete_failed": {"title": "Erro ao remover switch", "description": "Não foi possível remover o switch. {message}"},
    "update_failed": {
        "title": "Erro ao atualizar",
        "description": "Não foi possível atualizar os dados do switch. {message}",
    },
    "add_ports_failed": {
        "title": "Erro ao adicionar portas",
        "description": "Não foi possível adicionar novas portas. {message}",
    },
    # Validation
    "switch_fields_required": {
        "title": "Erro",
        "description": "Nome do switch e número de portas são obrigatórios e o número de portas deve ser positivo.",
    },
    "confirmation_required": {
        "title": "Confirmação necessária",
        "description": "Esta ação não pode ser desfeita. Confirme para continuar.",
    },
    "required": {"title": "Erro", "description": "Todos os campos são obrigatórios!"},
    "invalid_mac": {"title": "Erro", "description": "Formato de MAC inválido! Use: XX:XX:XX:XX:XX:XX"},
    "invalid_ip": {"title": "Erro", "description": "Formato de IP inválido!"},
    "invalid_type": {"title": "Erro", "description": "Tipo de dispositivo inválido!"},
    "duplicate_port": {"title": "Erro", "description": "Números de porta duplicados no switch."},
    "password_required": {
        "title": "Senha Requerida",
        "description": "Para convidar um novo usuário, uma senha inicial é necessária.",
    },
    "self_modification": {
        "title": "Operação não permitida",
        "description": "Você não pode alterar ou remover a própria conta.",
    },
    "already_admin": {"title": "Erro na Promoção", "description": "Sua conta já é de Administrador."},
    # Auth
    "login_success": {"title": "Login bem-sucedido!", "description": "Redirecionando para o painel..."},
    "logout_success": {"title": "Logout realizado", "description": "Você foi desconectado com sucesso."},
    "auth_error": {"title": "Erro de Autenticação", "description": "{message}"},
    "login_failed": {"title": "Erro de Autenticação", "description": "Falha no login. Verifique suas credenciais."},
    "invalid_credentials": {
        "title": "Erro de Autenticação",
        "description": "Credenciais inválidas. Verifique seu email e senha.",
    },
    "email_not_confirmed": {
        "title": "Erro de Autenticação",
        "description": "Email não confirmado. Por favor, verifique sua caixa de entrada.",
    },
    "user_not_found": {
        "title": "Erro de Autenticação",
        "description": "Usuário não encontrado. Verifique o email digitado.",
    },
    "profile_missing": {
        "title": "Erro de Autenticação",
        "description": "Perfil de usuário não encontrado. Sessão encerrada.",
    },
    "not_authenticated": {"title": "Erro de Autenticação", "description": "Faça login para continuar."},
    # User directory
    "users_list_failed": {"title": "Erro ao buscar usuários", "description": "{message}"},
    "user_invited": {"title": "Usuário convidado com sucesso!", "description": "{message}"},
    "user_updated": {"title": "Usuário atualizado com sucesso!", "description": "{message}"},
    "user_deleted": {"title": "Usuário removido com sucesso!", "description": "{message}"},
    "user_action_failed": {"title": "Erro ao gerenciar usuário", "description": "{message}"},
    "promoted": {
        "title": "Sucesso!",
        "description": "Você foi promovido a Administrador. A página será recarregada.",
    },
    "promotion_failed": {
        "title": "Erro na Promoção",
        "description": "{message}",
    },
    "admin_required": {"title": "Acesso negado", "description": "Apenas administradores podem acessar esta área."},
    # Generic
    "busy": {"title": "Aguarde", "description": "Outra operação ainda está em andamento."},
    "not_found": {"title": "Erro", "description": "{message}"},
    "gateway_error": {"title": "Erro", "description": "{message}"},
    "error": {"title": "Erro", "description": "{message}"},
}

_overrides: dict[str, dict[str, str]] | None = None


def _catalog_entry(key: str) -> dict[str, str]:
    global _overrides
    if _overrides is None:
        _overrides = load_messages()
        if _overrides:
            logger.info(f"Loaded {len(_overrides)} notification overrides")
    entry = dict(DEFAULT_MESSAGES.get(key, DEFAULT_MESSAGES["error"]))
    entry.update(_overrides.get(key, {}))
    return entry


def reset_overrides():
    """Forget cached overrides so the next lookup re-reads messages.yaml."""
    global _overrides
    _overrides = None


def notify(key: str, destructive: bool = False, **values) -> Notification:
    """Build a notification from the catalog, formatting ``{placeholders}``."""
    entry = _catalog_entry(key)
    values.setdefault("message", "")
    return Notification(
        title=entry["title"].format(**values),
        description=entry["description"].format(**values).strip(),
        variant="destructive" if destructive else "default",
    )


def notify_error(exc: PortmapError, operation: str | None = None) -> Notification:
    """Notification for a failed operation.

    Validation errors use the catalog entry for their code; gateway and other
    failures use the per-operation entry when one is given, with the remote
    message appended.
    """
    if isinstance(exc, ValidationError) or (operation is None and exc.code in DEFAULT_MESSAGES):
        return notify(exc.code, destructive=True, message=exc.message)
    return notify(operation or exc.code, destructive=True, message=exc.message)
