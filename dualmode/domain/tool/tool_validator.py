# Parameter validation
from typing import Dict, Any, List

import jsonschema


class ToolParameterValidator:
    @staticmethod
    def validate_tool_call(schema: Dict[str, Any], parameters: Dict[str, Any]) -> List[str]:
        """Return a list of schema violations; empty means valid"""

        validator = jsonschema.Draft202012Validator(schema)
        errors = sorted(validator.iter_errors(parameters), key=lambda e: list(e.absolute_path))

        return [
            f"{'/'.join(str(p) for p in error.absolute_path) or '<root>'}: {error.message}"
            for error in errors
        ]
