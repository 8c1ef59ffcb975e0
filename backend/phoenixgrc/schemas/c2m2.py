from pydantic import BaseModel


class C2M2DomainOut(BaseModel):
    id: int
    name: str
    code: str
    model_config = {"from_attributes": True}


class C2M2PracticeOut(BaseModel):
    id: int
    domain_id: int
    code: str
    description: str
    target_mil: int
    model_config = {"from_attributes": True}
