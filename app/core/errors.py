from fastapi import HTTPException


def field_error(field: str, message: str, location: str = "body") -> HTTPException:
    """Build a 422 shaped like FastAPI's own request validation errors."""
    return HTTPException(
        status_code=422,
        detail=[
            {
                "loc": [location, field],
                "msg": message,
                "type": "value_error",
            }
        ],
    )
