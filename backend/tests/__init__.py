# Register every table model with SQLModel metadata before conftest builds the schema
from app.models.match import Match  # noqa: F401
from app.models.player import Player  # noqa: F401
from app.models.tournament import Tournament  # noqa: F401
