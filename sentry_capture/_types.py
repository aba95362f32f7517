from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Any
    from typing import Callable
    from typing import Dict
    from typing import Optional
    from typing import Tuple
    from typing import Type
    from typing import Union

    ExcInfo = Tuple[
        Optional[Type[BaseException]], Optional[BaseException], Optional[TracebackType]
    ]

    # The wire shape of an event, as produced by ``serializer.serialize_event``.
    Payload = Dict[str, Any]

    # Anything the builder accepts in place of an exception.
    ErrorLike = Union[BaseException, ExcInfo]

    SendRequest = Callable[[Any], Any]
