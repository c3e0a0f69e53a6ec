from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import TypedDict

if TYPE_CHECKING:
    from weaklisten.signals import CancellationSignal


OPTION_NAMES = ('capture', 'passive', 'once', 'signal')


class ListenerOptionsDict(TypedDict, total=False):
    capture: bool
    passive: bool
    once: bool
    signal: 'CancellationSignal'


class ListenerOptions(BaseModel):
    """Canonical listener options, shared by weaklisten and the emitters it registers with."""

    model_config = ConfigDict(
        extra='forbid',
        arbitrary_types_allowed=True,
        validate_assignment=False,
    )

    capture: bool = False
    passive: bool | None = None
    once: bool = False
    # CancellationSignal, kept by reference
    signal: Any = Field(default=None, repr=False)

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> 'ListenerOptions':
        passive = options.get('passive')
        return cls(
            capture=bool(options.get('capture', False)),
            passive=None if passive is None else bool(passive),
            once=bool(options.get('once', False)),
            signal=options.get('signal'),
        )

    @classmethod
    def from_attributes(cls, options: Any) -> 'ListenerOptions':
        """Read the options off an object exposing them as attributes (a dataclass, a namespace)."""
        return cls.from_mapping({name: getattr(options, name) for name in OPTION_NAMES if hasattr(options, name)})

    def without_signal(self) -> 'ListenerOptions':
        """Copy for an emitter that must not see the signal (or once) handled by weaklisten itself."""
        return self.model_copy(update={'signal': None, 'once': False})


ListenerOptionsInput: TypeAlias = 'bool | ListenerOptions | ListenerOptionsDict | Mapping[str, Any] | object | None'


def normalize_options(options: ListenerOptionsInput = None) -> ListenerOptions:
    """
    Map any accepted options shape to a ListenerOptions record. Never raises.

        True                      -> ListenerOptions(capture=True)
        False / None / other      -> ListenerOptions()
        ListenerOptions instance  -> the same instance
        mapping                   -> ListenerOptions read from its keys, signal kept by reference
        object with option attrs  -> ListenerOptions read from those attributes
    """
    if options is True:
        return ListenerOptions(capture=True)
    if isinstance(options, ListenerOptions):
        return options
    if isinstance(options, Mapping):
        return ListenerOptions.from_mapping(options)
    if options is not None and not isinstance(options, (bool, str)) and any(hasattr(options, name) for name in OPTION_NAMES):
        return ListenerOptions.from_attributes(options)
    return ListenerOptions()


__all__ = [
    'ListenerOptions',
    'ListenerOptionsDict',
    'ListenerOptionsInput',
    'normalize_options',
]
