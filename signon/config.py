"""Authentication configuration, and credentials for roles.

Configuration is read from a YAML file, which is rendered as a Jinja2 template before it is parsed. All
settings lives under the `auth` key:

```yaml
auth:
  oidc:
    idp_type: keycloak
    login_url: https://app.example.com/login
    success:
      url: /dashboard
    mfa:
      type: totp
      totp_secret_env: ADMIN_TOTP_SECRET
  roles:
    admin:
      credentials_env:
        username: ADMIN_USER
        password: ADMIN_PASS
      oidc:
        mfa:
          enabled: false
  storage:
    directory: .auth-states
    max_age_minutes: 60
```

A YAML file with more than one document is merged, values in later documents takes precedence. The path of the
file is read from environment variable `SIGNON_CONFIGURATION_FILE` if not specified.

Credentials are never part of the configuration, only the names of the environment variables that contains them.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from os import environ
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Union

import yaml
from jinja2 import Environment

from signon.exceptions import ConfigurationError, ConfigurationErrorKind
from signon.storage import StorageOptions
from signon.types import Credentials, MfaType
from signon.utils import merge_dicts

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

CONFIGURATION_FILE_ENV = 'SIGNON_CONFIGURATION_FILE'


def _invalid(message: str) -> ConfigurationError:
    return ConfigurationError(
        message,
        ConfigurationErrorKind.INVALID_CONFIG,
        remediation='Check the auth section of the configuration file',
    )


def _mapping(data: Any, name: str) -> dict[str, Any]:
    if data is None:
        return {}

    if not isinstance(data, dict):
        message = f'{name} must be a mapping, not {type(data).__name__}'
        raise _invalid(message)

    return data


@dataclass(frozen=True)
class MfaConfig:
    enabled: bool = True
    type: str = 'none'
    totp_secret_env: Optional[str] = None
    totp_input_selector: Optional[str] = None
    totp_submit_selector: Optional[str] = None
    push_timeout_ms: int = 60000

    def __post_init__(self) -> None:
        # frozen, so normalization has to go through object.__setattr__
        object.__setattr__(self, 'type', (self.type or 'none').strip().lower())

    @property
    def mfa_type(self) -> Optional[MfaType]:
        """Known MFA type, or `None` if it is handled by the identity provider handler."""
        try:
            return MfaType.from_string(self.type)
        except ValueError:
            return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MfaConfig:
        try:
            return cls(
                enabled=bool(data.get('enabled', True)),
                type=str(data.get('type', None) or 'none'),
                totp_secret_env=data.get('totp_secret_env', None),
                totp_input_selector=data.get('totp_input_selector', None),
                totp_submit_selector=data.get('totp_submit_selector', None),
                push_timeout_ms=int(data.get('push_timeout_ms', None) or 60000),
            )
        except (TypeError, ValueError) as e:
            message = f'invalid mfa configuration: {e!s}'
            raise _invalid(message) from e


@dataclass(frozen=True)
class SuccessConfig:
    url: Optional[str] = None
    selector: Optional[str] = None
    timeout: Optional[int] = None


@dataclass(frozen=True)
class TimeoutsConfig:
    login_flow_ms: int = 30000
    idp_redirect_ms: int = 10000
    callback_ms: int = 10000


@dataclass(frozen=True)
class LogoutConfig:
    url: Optional[str] = None
    idp_logout: bool = False


@dataclass(frozen=True)
class OidcAuthProviderConfig:
    login_url: str
    idp_type: str = 'generic'
    idp_login_url: Optional[str] = None
    idp_selectors: dict[str, str] = field(default_factory=dict)
    mfa: Optional[MfaConfig] = None
    success: SuccessConfig = field(default_factory=SuccessConfig)
    timeouts: TimeoutsConfig = field(default_factory=TimeoutsConfig)
    logout: Optional[LogoutConfig] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> OidcAuthProviderConfig:
        login_url = data.get('login_url', None)

        if not login_url:
            message = 'oidc configuration must have a login_url'
            raise _invalid(message)

        mfa = data.get('mfa', None)
        logout = data.get('logout', None)
        success = _mapping(data.get('success', None), 'success')
        timeouts = _mapping(data.get('timeouts', None), 'timeouts')

        try:
            return cls(
                login_url=str(login_url),
                idp_type=str(data.get('idp_type', None) or 'generic'),
                idp_login_url=data.get('idp_login_url', None),
                idp_selectors={
                    key: str(value)
                    for key, value in _mapping(data.get('idp_selectors', None), 'idp_selectors').items()
                    if value is not None
                },
                mfa=MfaConfig.from_dict(_mapping(mfa, 'mfa')) if mfa is not None else None,
                success=SuccessConfig(
                    url=success.get('url', None),
                    selector=success.get('selector', None),
                    timeout=int(success['timeout']) if success.get('timeout', None) is not None else None,
                ),
                timeouts=TimeoutsConfig(**{key: int(value) for key, value in timeouts.items() if value is not None}),
                logout=LogoutConfig(**_mapping(logout, 'logout')) if logout is not None else None,
            )
        except (TypeError, ValueError) as e:
            message = f'invalid oidc configuration: {e!s}'
            raise _invalid(message) from e


@dataclass(frozen=True)
class CredentialsEnv:
    username: str
    password: str


@dataclass(frozen=True)
class RoleConfig:
    credentials_env: CredentialsEnv
    description: Optional[str] = None
    oidc: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class AuthConfig:
    roles: dict[str, RoleConfig] = field(default_factory=dict)
    provider: Optional[OidcAuthProviderConfig] = None
    storage: StorageOptions = field(default_factory=StorageOptions)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AuthConfig:
        roles: dict[str, RoleConfig] = {}

        for role, value in _mapping(data.get('roles', None), 'roles').items():
            role_data = _mapping(value, f'roles.{role}')
            credentials_env = _mapping(role_data.get('credentials_env', None), f'roles.{role}.credentials_env')

            try:
                roles.update({str(role): RoleConfig(
                    credentials_env=CredentialsEnv(
                        username=str(credentials_env['username']),
                        password=str(credentials_env['password']),
                    ),
                    description=role_data.get('description', None),
                    oidc=_mapping(role_data['oidc'], f'roles.{role}.oidc') if role_data.get('oidc', None) is not None else None,
                )})
            except KeyError as e:
                message = f'roles.{role}.credentials_env is missing {e!s}'
                raise _invalid(message) from e

        oidc = data.get('oidc', None)
        storage = data.get('storage', None)

        return cls(
            roles=roles,
            provider=OidcAuthProviderConfig.from_dict(_mapping(oidc, 'oidc')) if oidc is not None else None,
            storage=StorageOptions.from_dict(_mapping(storage, 'storage')) if storage is not None else StorageOptions(),
        )


@dataclass(frozen=True)
class MissingCredential:
    role: str
    type: str
    message: str
    env_var: Optional[str] = None


def load_configuration_file(path: Optional[Union[str, Path]] = None) -> dict[str, Any]:
    """Load the `auth` section of a YAML configuration file, an empty dict if there is no file to load."""
    configuration_file = path if path is not None else environ.get(CONFIGURATION_FILE_ENV, None)
    configuration: dict[str, Any] = {}

    if configuration_file is None:
        return configuration

    file = Path(configuration_file)

    if file.suffix not in ['.yml', '.yaml']:
        message = f'configuration file {file} must have file extension yml or yaml'
        raise _invalid(message)

    try:
        environment = Environment(autoescape=False)
        yaml_template = environment.from_string(file.read_text())
        yaml_content = yaml_template.render()

        for yaml_configuration in yaml.load_all(yaml_content, Loader=yaml.SafeLoader):
            if yaml_configuration is None:
                continue

            layer = _mapping(yaml_configuration, str(file)).get('auth', None)

            if layer is None:
                continue

            configuration = merge_dicts(configuration, _mapping(layer, 'auth'))
    except FileNotFoundError as e:
        logger.exception('%s does not exist', configuration_file)
        message = f'configuration file {file} does not exist'
        raise ConfigurationError(message, ConfigurationErrorKind.INVALID_CONFIG) from e
    except yaml.YAMLError as e:
        message = f'configuration file {file} is not valid YAML: {e!s}'
        raise _invalid(message) from e

    logger.debug('loaded configuration from %s', file)

    return configuration


def load_auth_config(path: Optional[Union[str, Path]] = None) -> AuthConfig:
    return AuthConfig.from_dict(load_configuration_file(path))


def _get_role_config(role: str, auth_config: AuthConfig) -> RoleConfig:
    role_config = auth_config.roles.get(role, None)

    if role_config is None:
        available_roles = ', '.join(auth_config.roles.keys())
        logger.error('role %s not found in configuration, available roles: %s', role, available_roles)
        message = f'Role "{role}" not found in auth configuration. Available roles: {available_roles}'
        raise ConfigurationError(
            message,
            ConfigurationErrorKind.UNKNOWN_ROLE,
            remediation=f'Check that the role "{role}" is defined in auth.roles in the configuration file',
        )

    return role_config


def _read_credentials(role: str, role_config: RoleConfig, env: Mapping[str, str]) -> Credentials:
    values: dict[str, str] = {}

    for name, env_var in [('username', role_config.credentials_env.username), ('password', role_config.credentials_env.password)]:
        value = env.get(env_var, None)

        if not value:
            logger.error('%s environment variable %s for role %s is not set', name, env_var, role)
            message = f'Environment variable "{env_var}" for role "{role}" {name} is not set'
            raise ConfigurationError(
                message,
                ConfigurationErrorKind.MISSING_CREDENTIALS,
                remediation=f'Set the {env_var} environment variable with the {name} for the "{role}" role',
            )

        values.update({name: value})

    return Credentials(username=values['username'], password=values['password'])


def get_credentials(role: str, auth_config: AuthConfig, env: Optional[Mapping[str, str]] = None, *, mask_password: bool = True) -> Credentials:
    """Read the username and password of `role` from the environment variables named in the role configuration."""
    if env is None:
        env = environ

    logger.debug('getting credentials for role %s', role)

    credentials = _read_credentials(role, _get_role_config(role, auth_config), env)

    logger.info(
        'credentials loaded for role %s: username=%s, password=%s',
        role,
        credentials.username,
        '***' if mask_password else credentials.password,
    )

    return credentials


def get_credentials_from_role_config(role: str, role_config: RoleConfig, env: Optional[Mapping[str, str]] = None, *, mask_password: bool = True) -> Credentials:
    if env is None:
        env = environ

    credentials = _read_credentials(role, role_config, env)

    logger.debug(
        'credentials loaded from role config for %s: username=%s, password=%s',
        role,
        credentials.username,
        '***' if mask_password else credentials.password,
    )

    return credentials


def has_credentials(role: str, auth_config: AuthConfig, env: Optional[Mapping[str, str]] = None) -> bool:
    if env is None:
        env = environ

    role_config = auth_config.roles.get(role, None)

    if role_config is None:
        return False

    return bool(env.get(role_config.credentials_env.username, None)) and bool(env.get(role_config.credentials_env.password, None))


def validate_credentials(roles: Iterable[str], auth_config: AuthConfig, env: Optional[Mapping[str, str]] = None) -> list[MissingCredential]:
    """Check all `roles` without raising, returns everything that is missing."""
    if env is None:
        env = environ

    missing: list[MissingCredential] = []

    for role in roles:
        role_config = auth_config.roles.get(role, None)

        if role_config is None:
            missing.append(MissingCredential(role=role, type='role', message=f'Role "{role}" not found in configuration'))
            continue

        for name, env_var in [('username', role_config.credentials_env.username), ('password', role_config.credentials_env.password)]:
            if not env.get(env_var, None):
                missing.append(MissingCredential(
                    role=role,
                    type=name,
                    env_var=env_var,
                    message=f'Environment variable "{env_var}" not set',
                ))

    return missing


def format_missing_credentials_error(missing: Iterable[MissingCredential]) -> str:
    missing = list(missing)

    if len(missing) < 1:
        return ''

    lines: list[str] = ['Missing credentials:']
    by_role: dict[str, list[MissingCredential]] = {}

    for item in missing:
        by_role.setdefault(item.role, []).append(item)

    for role, items in by_role.items():
        lines.append(f'  Role "{role}":')
        for item in items:
            if item.type == 'role':
                lines.append(f'    - {item.message}')
            else:
                lines.append(f'    - {item.type}: {item.env_var} ({item.message})')

    lines.extend(['', 'To fix, set the required environment variables:'])

    env_vars = list(dict.fromkeys(item.env_var for item in missing if item.env_var is not None))
    lines.extend(f'  export {env_var}="<value>"' for env_var in env_vars)

    return '\n'.join(lines)


def resolve_provider_config(auth_config: AuthConfig, role: str) -> OidcAuthProviderConfig:
    """OIDC configuration for `role`, where role level overrides are merged on top of the global configuration."""
    role_config = _get_role_config(role, auth_config)

    if auth_config.provider is None:
        if role_config.oidc is None:
            message = f'no oidc configuration for role "{role}"'
            raise _invalid(message)

        return OidcAuthProviderConfig.from_dict(role_config.oidc)

    if role_config.oidc is None:
        return auth_config.provider

    return OidcAuthProviderConfig.from_dict(merge_dicts(asdict(auth_config.provider), role_config.oidc))


__all__ = [
    'AuthConfig',
    'CredentialsEnv',
    'LogoutConfig',
    'MfaConfig',
    'MissingCredential',
    'OidcAuthProviderConfig',
    'RoleConfig',
    'SuccessConfig',
    'TimeoutsConfig',
    'format_missing_credentials_error',
    'get_credentials',
    'get_credentials_from_role_config',
    'has_credentials',
    'load_auth_config',
    'load_configuration_file',
    'resolve_provider_config',
    'validate_credentials',
]
