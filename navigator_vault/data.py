import uuid
from typing import Optional, Any
from enum import Enum
from datetime import datetime, timezone
from collections.abc import Iterator, Mapping, MutableMapping
import jsonpickle
from jsonpickle.unpickler import loadclass
from pydantic import BaseModel as PydanticBaseModel
from .exceptions import StorageError


def _plain(value: Any) -> Any:
    """Replace enum members by their values (models re-parse them)."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


class PydanticHandler(jsonpickle.handlers.BaseHandler):
    """PydanticHandler.
    This class can handle with serializable Pydantic Models.
    """
    def flatten(self, obj, data):
        data['__fields__'] = self.context.flatten(
            _plain(obj.model_dump()), reset=False
        )
        return data

    def restore(self, obj):
        module_and_type = obj['py/object']
        mdl = loadclass(module_and_type)
        fields = self.context.restore(obj['__fields__'], reset=False)
        return mdl.model_validate(fields)

jsonpickle.handlers.registry.register(PydanticBaseModel, PydanticHandler, base=True)


class SessionData(MutableMapping[str, Any]):
    """Session-scoped storage area.

    Dict-like bag living only as long as the browsing session; values are
    stored encoded (jsonpickle) so readers always get a fresh copy and
    never share a live reference with the area.
    """

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        id: Optional[str] = None,
    ) -> None:
        self._data: dict[str, str] = {}
        self._changed: bool = False
        self._id_ = id or uuid.uuid4().hex
        self._now = datetime.now(timezone.utc)
        self._created = int(self._now.timestamp())
        if data:
            for key, value in data.items():
                self[key] = value

    def __repr__(self) -> str:
        return (
            f'<NAV-VaultArea [id:{self._id_}, created:{self.created}] '
            f'keys={list(self._data.keys())}>'
        )

    # --- Properties ---

    @property
    def session_id(self) -> str:
        return self._id_

    @property
    def created(self) -> int:
        return self._created

    @property
    def logon_time(self) -> datetime:
        return self._now

    @property
    def empty(self) -> bool:
        return not bool(self._data)

    @property
    def is_changed(self) -> bool:
        return self._changed

    @is_changed.setter
    def is_changed(self, value: bool) -> None:
        self._changed = value

    def invalidate(self) -> None:
        """Clear all data of this area."""
        self._changed = True
        self._data = {}

    # --- Magic Methods ---

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __getitem__(self, key: str) -> Any:
        return self.decode(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = self.encode(value)
        self._changed = True

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._changed = True

    def update_encoded(self, encoded: Mapping[str, str]) -> None:
        """Write already-encoded values in a single step."""
        self._data.update(encoded)
        self._changed = True

    def encode(self, obj: Any) -> str:
        """encode

            Encode an object using jsonpickle.
        Args:
            obj (Any): Object to be encoded using jsonpickle

        Raises:
            StorageError: Error converting data to json.

        Returns:
            str: json version of the data
        """
        try:
            return jsonpickle.encode(obj)
        except Exception as err:
            raise StorageError(
                f"Unable to encode value: {err}"
            ) from err

    def decode(self, key: str) -> Any:
        """decode.

            Decoding a stored key using jsonpickle.
        Args:
            key (str): key name.

        Raises:
            KeyError: key is missing.
            StorageError: Error converting data from json.

        Returns:
            Any: object converted.
        """
        value = self._data[key]
        try:
            return jsonpickle.decode(value)
        except Exception as err:
            raise StorageError(
                f"Unable to decode value of {key}: {err}"
            ) from err
