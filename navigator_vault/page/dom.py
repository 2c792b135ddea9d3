"""
Page model.

The minimal view of a displayed page the injection engine needs: its URL,
its forms and its input elements in document order. A browser bridge
builds a :class:`Page` from the live document and mirrors the values and
events written here back to it.
"""
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Event:
    type: str
    target: "InputField"
    bubbles: bool = True


Listener = Callable[[Event], None]


@dataclass(eq=False)
class Form:
    """A ``<form>`` element."""

    id: str = ''
    name: str = ''
    displayed: bool = True
    inputs: list["InputField"] = field(default_factory=list)
    listeners: dict[str, list[Listener]] = field(default_factory=dict, repr=False)

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        self.listeners.setdefault(event_type, []).append(listener)


@dataclass(eq=False)
class InputField:
    """An ``<input>`` element.

    ``displayed`` is False when the element has no layout, e.g. when it or
    an ancestor is ``display: none``.
    """

    type: str = 'text'
    name: str = ''
    id: str = ''
    autocomplete: str = ''
    disabled: bool = False
    displayed: bool = True
    value: str = field(default='', repr=False)
    form: Optional[Form] = field(default=None, repr=False)
    events: list[str] = field(default_factory=list, repr=False)
    listeners: dict[str, list[Listener]] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self.type = (self.type or 'text').lower()

    @property
    def visible(self) -> bool:
        if not self.displayed:
            return False
        return self.form is None or self.form.displayed

    @property
    def usable(self) -> bool:
        return self.visible and not self.disabled

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        self.listeners.setdefault(event_type, []).append(listener)

    def dispatch_event(self, event_type: str, bubbles: bool = True) -> Event:
        """Notify listeners on this element, then on its form if bubbling."""
        event = Event(type=event_type, target=self, bubbles=bubbles)
        self.events.append(event_type)
        for listener in self.listeners.get(event_type, []):
            listener(event)
        if bubbles and self.form is not None:
            for listener in self.form.listeners.get(event_type, []):
                listener(event)
        return event


class Page:
    """A displayed document: URL plus inputs in document order."""

    def __init__(self, url: str):
        self.url = url
        self.forms: list[Form] = []
        self.inputs: list[InputField] = []

    def __repr__(self) -> str:
        return f"<Page {self.url!r} forms={len(self.forms)} inputs={len(self.inputs)}>"

    def add_form(self, **kwargs) -> Form:
        form = Form(**kwargs)
        self.forms.append(form)
        return form

    def add_input(self, form: Optional[Form] = None, **kwargs) -> InputField:
        """Append an input at the end of the document."""
        element = InputField(form=form, **kwargs)
        self.inputs.append(element)
        if form is not None:
            form.inputs.append(element)
        return element

    def scope_inputs(self, form: Optional[Form] = None) -> list[InputField]:
        """Inputs of ``form`` in document order, or of the whole page."""
        if form is None:
            return list(self.inputs)
        return [element for element in self.inputs if element.form is form]

    def __iter__(self) -> Iterator[InputField]:
        return iter(self.inputs)
