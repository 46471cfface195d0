from pydantic import ValidationError

NAME_FIELDS = ("name", "prospect_name")


def format_validation_error(error: ValidationError) -> str:
    """Joins pydantic messages into one human-readable 'Validation error: ...' string."""
    messages = []
    for item in error.errors():
        loc = item.get("loc") or ()
        if item.get("type") == "missing" and loc and loc[0] in NAME_FIELDS:
            messages.append("Prospect name is required")
            continue
        message = item.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        elif loc:
            message = f"{loc[0]}: {message}"
        messages.append(message)
    return f"Validation error: {', '.join(messages)}"
