from pydantic import BaseModel


class ImportOut(BaseModel):
    kind: str
    created: int
