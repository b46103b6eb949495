from typing import List, Optional

from pydantic import BaseModel, Field

from ..action import Action
from ..lamport import LamportPublicKey, LamportSignature
from ..signing import ClassicalSignature


class ActionModel(BaseModel):
    destination: str
    value: int = Field(ge=0)
    payload: str = ""

    def to_action(self) -> Action:
        return Action.from_dict(self.model_dump())


class ClassicalSignatureModel(BaseModel):
    verify_key: str
    sig_b64: str

    def to_signature(self) -> ClassicalSignature:
        return ClassicalSignature.from_dict(self.model_dump())


class LamportPublicKeyModel(BaseModel):
    zeros: List[str]
    ones: List[str]

    def to_public_key(self) -> LamportPublicKey:
        return LamportPublicKey.from_dict(self.model_dump())


class OneTimeExecuteRequest(BaseModel):
    action: ActionModel
    signature: List[str]

    def lamport_signature(self) -> LamportSignature:
        return LamportSignature.from_list(self.signature)


class MerkleExecuteRequest(BaseModel):
    action: ActionModel
    leaf_hash: str
    proof: List[str] = Field(default_factory=list)
    signature: Optional[List[str]] = None
    public_key: Optional[LamportPublicKeyModel] = None


class HybridExecuteRequest(BaseModel):
    action: ActionModel
    signature: ClassicalSignatureModel
    secret: str


class SignedOperation(BaseModel):
    issued_at: int
    signature: ClassicalSignatureModel


class CommitmentUpdateRequest(SignedOperation):
    commitment: str


class ProposeRequest(SignedOperation):
    new_key: str


class GuardianRequest(SignedOperation):
    pass


class ProtectedActionRequest(BaseModel):
    payload: str
    signature: ClassicalSignatureModel
