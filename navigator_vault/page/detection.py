"""
Login field detection.

Detection is a list of named strategies tried in priority order; the first
strategy that finds a field wins. New heuristics are added by appending a
``FieldStrategy`` to a list, never by touching :func:`detect_login_fields`.

Password field: the first visible, enabled ``password`` input. Its form,
when it has one, becomes the scope searched for the username field.
"""
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Optional

from .dom import Form, InputField, Page

IDENTITY_HINTS = ('email', 'user', 'login')
IDENTITY_AUTOCOMPLETE = ('username', 'email')

Predicate = Callable[[InputField], bool]


@dataclass(frozen=True)
class FieldStrategy:
    """A named field predicate and where to look for matches.

    ``search`` is ``scope`` (the password field's form, or the page) or
    ``preceding`` (the whole page, walking backwards from the password
    field in document order).
    """

    name: str
    predicate: Predicate
    search: str = 'scope'

    def find(
        self,
        page: Page,
        scope: Optional[Form],
        password: Optional[InputField] = None
    ) -> Optional[InputField]:
        if self.search == 'preceding':
            if password is None or password not in page.inputs:
                return None
            position = page.inputs.index(password)
            candidates = reversed(page.inputs[:position])
        else:
            candidates = page.scope_inputs(scope)
        for element in candidates:
            if element is not password and self.predicate(element):
                return element
        return None


def _has_identity_hint(element: InputField) -> bool:
    attrs = f"{element.name} {element.id}".lower()
    if any(hint in attrs for hint in IDENTITY_HINTS):
        return True
    return element.autocomplete.lower() in IDENTITY_AUTOCOMPLETE


PASSWORD_STRATEGIES: list[FieldStrategy] = [
    FieldStrategy(
        'password-type',
        lambda el: el.type == 'password' and el.usable,
    ),
]

USERNAME_STRATEGIES: list[FieldStrategy] = [
    FieldStrategy(
        'email-type',
        lambda el: el.type == 'email' and el.usable,
    ),
    FieldStrategy(
        'identity-attribute',
        lambda el: el.type != 'password' and el.usable and _has_identity_hint(el),
    ),
    FieldStrategy(
        'text-type',
        lambda el: el.type == 'text' and el.usable,
    ),
    FieldStrategy(
        'preceding-input',
        lambda el: el.type in ('text', 'email') and el.usable,
        search='preceding',
    ),
]


@dataclass
class LoginFields:
    password: InputField
    username: Optional[InputField]
    scope: Optional[Form]
    password_strategy: str
    username_strategy: Optional[str] = None


def run_strategies(
    strategies: Sequence[FieldStrategy],
    page: Page,
    scope: Optional[Form] = None,
    password: Optional[InputField] = None
) -> tuple[Optional[InputField], Optional[str]]:
    """Return the first match and the name of the strategy that found it."""
    for strategy in strategies:
        element = strategy.find(page, scope, password)
        if element is not None:
            return element, strategy.name
    return None, None


def detect_login_fields(
    page: Page,
    password_strategies: Sequence[FieldStrategy] = PASSWORD_STRATEGIES,
    username_strategies: Sequence[FieldStrategy] = USERNAME_STRATEGIES
) -> Optional[LoginFields]:
    """Find the best username/password pair, None without a password field."""
    password, password_strategy = run_strategies(password_strategies, page)
    if password is None:
        return None
    scope = password.form
    username, username_strategy = run_strategies(
        username_strategies, page, scope, password
    )
    return LoginFields(
        password=password,
        username=username,
        scope=scope,
        password_strategy=password_strategy,
        username_strategy=username_strategy,
    )
