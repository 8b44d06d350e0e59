"""
Variable Scope

The mutable variable environment owned by exactly one execution context.
Sub-workflow calls derive an independent child scope and copy selected
values back on return.
"""

import copy
from typing import Any, Dict, Iterator, Mapping, MutableMapping, Optional, Union

ScopeValue = Union[str, int, float, bool, dict, list]


class VariableScope(MutableMapping):
    """Mapping of variable name to value for one running workflow."""

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._values: Dict[str, Any] = dict(initial or {})

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __setitem__(self, name: str, value: Any) -> None:
        if not isinstance(name, str) or not name:
            raise ValueError(f"Invalid variable name: {name!r}")
        self._values[name] = value

    def __delitem__(self, name: str) -> None:
        del self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"VariableScope({self._values!r})"

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the current values, safe to store in a record."""
        return copy.deepcopy(self._values)

    def derive_child(self, inputs: Optional[Mapping[str, Any]] = None) -> "VariableScope":
        """
        Create the scope for a nested workflow call.

        The child sees only the explicit input mapping, never the parent's
        variables.
        """
        return VariableScope(copy.deepcopy(dict(inputs or {})))

    @staticmethod
    def exports(
        child: Mapping[str, Any],
        output_mapping: Optional[Mapping[str, str]] = None,
        prefix: str = "",
    ) -> Dict[str, Any]:
        """
        Compute the parent writes for a finished nested call.

        Args:
            child: The scope the nested run finished with
            output_mapping: ``{parentVar: childVar}``; when given, only these are copied
            prefix: Prepended to every child name when no mapping is given

        Returns:
            Values keyed by parent variable name; unset child names are skipped
        """
        writes: Dict[str, Any] = {}
        if output_mapping:
            for parent_name, child_name in output_mapping.items():
                if child_name in child:
                    writes[parent_name] = copy.deepcopy(child[child_name])
        else:
            for name, value in child.items():
                writes[prefix + name] = copy.deepcopy(value)
        return writes

    def merge_back(
        self,
        child: "VariableScope",
        output_mapping: Optional[Mapping[str, str]] = None,
        prefix: str = "",
    ) -> Dict[str, Any]:
        """Apply ``exports(child, ...)`` to this scope and return the writes."""
        writes = self.exports(child, output_mapping, prefix)
        self.update(writes)
        return writes
