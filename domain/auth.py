"""Domain Entities - Auth"""
from pydantic import BaseModel


class Operator(BaseModel):
    """Front-desk operator identified by a verified bearer token"""
    username: str

    class Config:
        frozen = True
