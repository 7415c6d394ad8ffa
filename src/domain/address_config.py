"""
Address configuration for alias forwarding.

Holds the owning domain, the default sender mailbox, the fallback recipient
and the alias table. Built once per processed record from the Lambda
environment and never mutated afterwards.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

logger = logging.getLogger(__name__)

AliasInput = Union[str, Mapping[str, str], None]


class ConfigError(ValueError):
    """Raised when a required address setting is not defined."""
    pass


def _parse_aliases(aliases: AliasInput) -> Mapping[str, str]:
    """
    Resolve the alias input to a read-only mapping.

    Args:
        aliases: JSON string, mapping, or None

    Returns:
        Mapping of mailbox -> destination address. Unparseable JSON (or JSON
        that is not an object) gives an empty mapping.
    """
    if aliases is None:
        return MappingProxyType({})

    if isinstance(aliases, str):
        try:
            parsed = json.loads(aliases)
        except ValueError:
            logger.warning("ALIASES is not valid JSON, using an empty alias table")
            return MappingProxyType({})

        if not isinstance(parsed, dict):
            logger.warning(
                f"ALIASES must be a JSON object, got {type(parsed).__name__}; "
                f"using an empty alias table"
            )
            return MappingProxyType({})
        return MappingProxyType(parsed)

    return MappingProxyType(dict(aliases))


@dataclass(frozen=True)
class AddressConfig:
    """
    Default addresses and alias table of the forwarding domain.

    Attributes:
        domain: Domain part of every managed address ("mydomain.com")
        default_sender: Sender mailbox ("no-reply") or full address
        default_recipient: Fallback destination ("me@gmail.com")
        aliases: Alias table as a mapping or a JSON string

    Example:
        >>> config = AddressConfig('mydomain.com', 'no-reply', 'me@gmail.com',
        ...                        '{"info": "boss@yahoo.com"}')
        >>> config.sender_address
        'no-reply@mydomain.com'
        >>> config.alias_map['info']
        'boss@yahoo.com'
    """
    domain: Optional[str]
    default_sender: Optional[str]
    default_recipient: Optional[str]
    aliases: Any = field(default=None, repr=False)

    # The alias table is a mappingproxy, which cannot be hashed
    __hash__ = None

    def __post_init__(self):
        object.__setattr__(self, 'aliases', _parse_aliases(self.aliases))
        self._check_required()

    def _check_required(self) -> None:
        """Raise ConfigError naming the first field that is None (empty strings pass)."""
        required = (
            ('domain', self.domain),
            ('default_sender', self.default_sender),
            ('default_recipient', self.default_recipient),
            ('alias_map', self.aliases),
        )
        for name, value in required:
            if value is None:
                raise ConfigError(f"{name} is not defined")

    @property
    def alias_map(self) -> Mapping[str, str]:
        """Read-only alias table: {mailbox: destination address}."""
        return self.aliases

    @property
    def sender_address(self) -> str:
        """Full sender address: mailbox + domain, or the configured address."""
        if '@' in self.default_sender:
            return self.default_sender
        return f"{self.default_sender}@{self.domain}"

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> 'AddressConfig':
        """
        Build the configuration from Lambda environment variables.

        Reads DOMAIN, DEFAULT_EMAIL_FROM, DEFAULT_EMAIL_TO and ALIASES.

        Raises:
            ConfigError: If DOMAIN, DEFAULT_EMAIL_FROM or DEFAULT_EMAIL_TO is unset
        """
        env = os.environ if environ is None else environ
        return cls(
            domain=env.get('DOMAIN'),
            default_sender=env.get('DEFAULT_EMAIL_FROM'),
            default_recipient=env.get('DEFAULT_EMAIL_TO'),
            aliases=env.get('ALIASES'),
        )
