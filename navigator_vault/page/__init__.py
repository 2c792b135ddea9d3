"""Page matching, login field detection and credential injection."""
from .urls import normalize, matches_page, filter_for_page
from .dom import Page, Form, InputField, Event
from .detection import (
    FieldStrategy,
    LoginFields,
    PASSWORD_STRATEGIES,
    USERNAME_STRATEGIES,
    detect_login_fields,
)
from .injection import InjectionResult, fill_field, inject_credentials
from .agent import PageAgent

__all__ = (
    "normalize",
    "matches_page",
    "filter_for_page",
    "Page",
    "Form",
    "InputField",
    "Event",
    "FieldStrategy",
    "LoginFields",
    "PASSWORD_STRATEGIES",
    "USERNAME_STRATEGIES",
    "detect_login_fields",
    "InjectionResult",
    "fill_field",
    "inject_credentials",
    "PageAgent",
)
