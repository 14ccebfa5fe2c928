from pydantic import BaseModel, Field


class ProfileCard(BaseModel):
    """A person's card as shown in other members' decks.

    Media fields hold either a URL or an inline ``data:`` payload; their
    encoding is not inspected.
    """

    id: str
    user_id: str
    full_name: str
    photo_url: str | None = None
    phonetic_text: str | None = None
    pronunciation_audio_url: str | None = None
    short_bio: str | None = None
    nationality: str | None = None
    fun_fact: str | None = None
    links: list[str] = Field(default_factory=list)

    @property
    def first_name(self) -> str:
        return self.full_name.split(" ")[0] if self.full_name else ""


class ProfileUpdate(BaseModel):
    full_name: str | None = None
    photo_url: str | None = None
    phonetic_text: str | None = None
    pronunciation_audio_url: str | None = None
    short_bio: str | None = None
    nationality: str | None = None
    fun_fact: str | None = None
    links: list[str] | None = None
