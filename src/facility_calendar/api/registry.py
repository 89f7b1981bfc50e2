from __future__ import annotations

import inspect
import types
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Union, get_args, get_origin, get_type_hints

JsonSchema = Dict[str, Any]

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
}


def _json_type(annotation: Any) -> str:
    origin = get_origin(annotation)
    if origin is None:
        return _JSON_TYPES.get(annotation, "string")
    if origin in (list, List):
        return "array"
    if origin in (dict, Dict):
        return "object"
    if origin in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        return _json_type(args[0]) if args else "string"
    return "string"


def _accepts(annotation: Any, value: Any) -> bool:
    """Shallow JSON type check of ``value`` against a parameter annotation."""

    if get_origin(annotation) in (Union, types.UnionType):
        return any(_accepts(arg, value) for arg in get_args(annotation))
    if annotation is type(None):
        return value is None
    expected = get_origin(annotation) or annotation
    if expected not in _JSON_TYPES:
        return True
    if expected is bool:
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if expected is float:
        return isinstance(value, (int, float))
    return isinstance(value, expected)


@dataclass(frozen=True)
class ApiFunction:
    name: str
    func: Callable[..., Any]
    description: str
    category: str
    tags: tuple[str, ...]
    signature: inspect.Signature
    hints: Dict[str, Any]

    @property
    def parameter_schema(self) -> JsonSchema:
        schema: JsonSchema = {"type": "object", "properties": {}, "required": []}
        for param in self.signature.parameters.values():
            prop: JsonSchema = {"type": _json_type(self.hints.get(param.name, str))}
            if param.default is inspect.Parameter.empty:
                schema["required"].append(param.name)
            elif isinstance(param.default, (str, int, float, bool)):
                prop["default"] = param.default
            schema["properties"][param.name] = prop
        if not schema["required"]:
            schema.pop("required")
        return schema

    def bind(self, arguments: Dict[str, Any]) -> inspect.BoundArguments:
        """Check ``arguments`` against the signature and hints; raises ``TypeError`` on a mismatch."""

        bound = self.signature.bind(**arguments)
        for name, value in bound.arguments.items():
            annotation = self.hints.get(name, Any)
            if not _accepts(annotation, value):
                raise TypeError(
                    f"Argument '{name}' of '{self.name}' must be of type {_json_type(annotation)}, "
                    f"got {type(value).__name__}."
                )
        return bound


REGISTRY: Dict[str, ApiFunction] = {}


def register_api(
    name: str,
    *,
    description: str,
    category: str,
    tags: Optional[Iterable[str]] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        if name in REGISTRY:
            raise ValueError(f"API function '{name}' is already registered.")
        REGISTRY[name] = ApiFunction(
            name=name,
            func=func,
            description=description,
            category=category,
            tags=tuple(tags or ()),
            signature=inspect.signature(func),
            hints=get_type_hints(func),
        )
        return func

    return decorator


def get_api_functions() -> List[ApiFunction]:
    return sorted(REGISTRY.values(), key=lambda item: item.name)


def call_api(name: str, **kwargs: Any) -> Any:
    if name not in REGISTRY:
        raise KeyError(f"API function '{name}' is not registered.")
    api_function = REGISTRY[name]
    bound = api_function.bind(kwargs)
    return api_function.func(*bound.args, **bound.kwargs)
