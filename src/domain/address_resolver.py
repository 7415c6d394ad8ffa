"""
Recipient remapping for forwarded email.

Turns the raw "To" header values of an inbound message into the list of
addresses that receive the forwarded copy:

1. Extract mailbox and domain from each header value
2. Drop addresses outside the forwarding domain
3. Map the mailbox through the alias table (or the default recipient)
4. Deduplicate, keeping first-seen order
5. Fall back to the default recipient when nothing matched

Header values are loosely structured, all of these are accepted:

    user@mydomain.com
    <user@mydomain.com>
    "Display Name" <user@mydomain.com>
    'Display Name' <user@mydomain.com>
    Display Name With Spaces <user@mydomain.com>
    "user@mydomain.com" <user@mydomain.com>
    =?utf-8?B?dXRmOCBiYXNlNjQ=?= <user@mydomain.com>
"""

import logging
from enum import Enum
from typing import Iterable, List, NamedTuple, Optional

from .address_config import AddressConfig

logger = logging.getLogger(__name__)


class ParsedAddress(NamedTuple):
    """Mailbox and domain extracted from a raw header value."""
    display_name: str
    local_part: str
    domain: str


class _State(Enum):
    BRACKETED_ADDRESS = 'bracketed_address'
    BARE_ADDRESS = 'bare_address'


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == '_'


def parse_recipient(raw: str) -> Optional[ParsedAddress]:
    """
    Split a raw header value into display name, mailbox and domain.

    The address starts after the last '<' that still has an '@' to its
    right; without such a bracket the whole value is the address. The
    mailbox is everything before the last '@' of the address and the
    domain everything after it, minus trailing non-word characters
    such as the closing '>'.

    Args:
        raw: Header value, e.g. '"Info" <info@mydomain.com>'

    Returns:
        ParsedAddress, or None if the value holds no usable address

    Example:
        >>> parse_recipient('"Name" <user@mydomain.com>')
        ParsedAddress(display_name='"Name"', local_part='user', domain='mydomain.com')
    """
    value = (raw or '').strip()
    last_at = value.rfind('@')
    if last_at == -1:
        return None

    # Bare until a '<' is seen before the last '@'; everything up to
    # that bracket is then the display name.
    state = _State.BARE_ADDRESS
    address_start = 0
    for index, char in enumerate(value[:last_at]):
        if char == '<':
            state = _State.BRACKETED_ADDRESS
            address_start = index + 1

    if state is _State.BRACKETED_ADDRESS:
        display_name = value[:address_start - 1].strip()
    else:
        display_name = ''

    local_part = value[address_start:last_at]

    domain_end = len(value)
    while domain_end > last_at + 1 and not _is_word_char(value[domain_end - 1]):
        domain_end -= 1
    domain = value[last_at + 1:domain_end]

    if not local_part or not domain:
        return None

    return ParsedAddress(display_name=display_name, local_part=local_part, domain=domain)


class _OrderedRecipients:
    """Insertion-ordered set of destination addresses."""

    def __init__(self):
        self._items: List[str] = []
        self._seen = set()

    def add(self, address: str) -> None:
        if address not in self._seen:
            self._seen.add(address)
            self._items.append(address)

    def __len__(self) -> int:
        return len(self._items)

    def to_list(self) -> List[str]:
        return list(self._items)


def resolve_recipients(raw_recipients: Iterable[str], config: AddressConfig) -> List[str]:
    """
    Compute the destinations of a forwarded message.

    Args:
        raw_recipients: Raw "To" header values of the inbound message
        config: Forwarding domain, alias table and default recipient

    Returns:
        Ordered, duplicate-free list of destination addresses (never empty)

    Example:
        >>> config = AddressConfig('mydomain.com', 'no-reply', 'me@gmail.com',
        ...                        {'info': 'boss@yahoo.com'})
        >>> resolve_recipients(['info@mydomain.com', 'info@unknown.com'], config)
        ['boss@yahoo.com']
    """
    destinations = _OrderedRecipients()

    for raw in raw_recipients:
        parsed = parse_recipient(raw)
        if parsed is None:
            logger.debug(f"Skipping unparseable recipient: {raw!r}")
            continue

        if parsed.domain != config.domain:
            logger.debug(f"Skipping recipient outside {config.domain}: {raw!r}")
            continue

        destinations.add(config.alias_map.get(parsed.local_part, config.default_recipient))

    if not len(destinations):
        return [config.default_recipient]

    return destinations.to_list()
