"""Dynamic statement assembly for search and procedure execution.

Values are always bound through ``?`` markers. Identifiers are interpolated
only through ``quote_identifier`` and only after they were resolved or read
back from the catalog.
"""

import json
from typing import Any, Dict, List, Sequence, Tuple

from .catalog import ProcedureParameter
from .error_handling import InvalidArgumentsError
from .identifiers import TableRef, quote_identifier

LIKE_ESCAPE = "\\"
RETURN_VALUE_COLUMN = "__return_value"

_LENGTH_TYPES = {"char", "varchar", "binary", "varbinary"}
_UNICODE_LENGTH_TYPES = {"nchar", "nvarchar"}
_PRECISION_SCALE_TYPES = {"decimal", "numeric"}
_FRACTIONAL_SECONDS_TYPES = {"datetime2", "time", "datetimeoffset"}


def escape_like(term: str) -> str:
    """Escape LIKE metacharacters so the term matches literally."""
    return (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
        .replace("[", LIKE_ESCAPE + "[")
    )


def build_search_statement(ref: TableRef, columns: Sequence[str], search_term: str,
                           max_rows: int) -> Tuple[str, List[Any]]:
    """SELECT TOP (n) * ... WHERE col1 LIKE ? OR col2 LIKE ? ..."""
    if not columns:
        raise InvalidArgumentsError("No searchable columns found in table")

    pattern = f"%{escape_like(search_term)}%"
    conditions = " OR ".join(
        f"{quote_identifier(column)} LIKE ? ESCAPE '{LIKE_ESCAPE}'" for column in columns
    )
    sql = f"SELECT TOP (?) * FROM {ref.qualified_name} WHERE {conditions}"
    params = [max_rows] + [pattern] * len(columns)
    return sql, params


def normalize_parameter_name(key: str) -> str:
    """``@CustomerId`` and ``CustomerId`` name the same parameter."""
    return key[1:] if key.startswith("@") else key


def sql_type_spec(param: ProcedureParameter) -> str:
    """Declaration type for a variable matching a catalog parameter."""
    type_name = param.data_type.lower()
    spec = quote_identifier(param.data_type)
    if type_name in _LENGTH_TYPES:
        length = "MAX" if param.max_length == -1 else str(param.max_length)
        return f"{spec}({length})"
    if type_name in _UNICODE_LENGTH_TYPES:
        length = "MAX" if param.max_length == -1 else str(param.max_length // 2)
        return f"{spec}({length})"
    if type_name in _PRECISION_SCALE_TYPES:
        return f"{spec}({param.precision}, {param.scale})"
    if type_name in _FRACTIONAL_SECONDS_TYPES:
        return f"{spec}({param.scale})"
    return spec


def _bind_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def match_parameters(declared: Sequence[ProcedureParameter],
                     supplied: Dict[str, Any]) -> Dict[str, Any]:
    """Map supplied keys onto declared parameter names (case-insensitive)."""
    by_name = {param.bare_name.lower(): param for param in declared}
    matched: Dict[str, Any] = {}
    unknown = []
    for key, value in (supplied or {}).items():
        param = by_name.get(normalize_parameter_name(str(key)).lower())
        if param is None:
            unknown.append(str(key))
        else:
            matched[param.name] = value

    if unknown:
        known = ", ".join(param.name for param in declared) or "none"
        raise InvalidArgumentsError(
            f"Unknown procedure parameters: {', '.join(unknown)}",
            details=f"Declared parameters: {known}"
        )
    return matched


def build_procedure_batch(proc: TableRef, declared: Sequence[ProcedureParameter],
                          supplied: Dict[str, Any]) -> Tuple[str, List[Any], List[str]]:
    """EXEC batch capturing return code and OUTPUT parameters.

    Returns the batch text, its positional values, and the bare names of the
    output parameters in the order they appear in the trailing SELECT.
    """
    matched = match_parameters(declared, supplied)

    declarations = ["DECLARE @__return_value INT;"]
    declaration_params: List[Any] = []
    assignments = []
    assignment_params: List[Any] = []
    selected = [f"@__return_value AS {quote_identifier(RETURN_VALUE_COLUMN)}"]
    output_names = []

    for index, param in enumerate(declared):
        if param.is_output:
            variable = f"@__out_{index}"
            if param.name in matched:
                declarations.append(f"DECLARE {variable} {sql_type_spec(param)} = ?;")
                declaration_params.append(_bind_value(matched[param.name]))
            else:
                declarations.append(f"DECLARE {variable} {sql_type_spec(param)};")
            assignments.append(f"{param.name} = {variable} OUTPUT")
            selected.append(f"{variable} AS {quote_identifier(param.bare_name)}")
            output_names.append(param.bare_name)
        elif param.name in matched:
            assignments.append(f"{param.name} = ?")
            assignment_params.append(_bind_value(matched[param.name]))

    exec_line = f"EXEC @__return_value = {proc.qualified_name}"
    if assignments:
        exec_line += " " + ", ".join(assignments)

    sql = "\n".join(declarations + [exec_line + ";", "SELECT " + ", ".join(selected) + ";"])
    return sql, declaration_params + assignment_params, output_names
