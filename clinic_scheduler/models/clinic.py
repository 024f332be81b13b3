from sqlmodel import Field, SQLModel


class Clinic(SQLModel, table=True):
    __tablename__ = "clinics"
    id: int | None = Field(default=None, primary_key=True)
    name: str
    timezone: str = "UTC"  # IANA zone all schedule times are expressed in
    is_active: bool = True
