from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from stratix.exceptions import ValidationError

ModelType = TypeVar("ModelType", bound=BaseModel)


def schema_issues(error: SchemaError) -> List[Dict[str, Any]]:
    return [
        {
            "path": [str(part) for part in issue.get("loc", ())],
            "message": issue.get("msg", ""),
            "code": issue.get("type", ""),
        }
        for issue in error.errors()
    ]


def parse_model(model: Type[ModelType], data: Any, message: str) -> ModelType:
    """Validate ``data`` against ``model``; failures become a 400 with the issue list."""
    try:
        return model.model_validate(data)
    except SchemaError as e:
        raise ValidationError(message, {"issues": schema_issues(e)})

