from pydantic import BaseModel, ConfigDict, Field, field_validator


class CalendarEvent(BaseModel):
    """
    One entry of the calendar feed. Treated as an immutable value record.
    """
    model_config = ConfigDict(frozen=True)

    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    time: str | None = None
    time_formatted: str | None = None
    details: str = ""
    location: str = ""
    type: str = ""
    coverage: str | None = None
    url: str | None = None
    video_url: str | None = None

    @field_validator("details", "location", "type", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return "" if v is None else v


if __name__ == "__main__":
    example = CalendarEvent(
        date="2025-01-15",
        time="14:00:00",
        time_formatted="2:00 PM",
        details="The President participates in a bilateral meeting",
        location="The White House",
        type="Meeting",
        coverage="Closed Press",
    )
    print(example.model_dump_json())
