"""
Motion Routes - encode motion trees to wire text, decode it back
"""

from dataclasses import asdict
from fastapi import APIRouter
from pydantic import BaseModel, Field
from typing import List, Union

from core.encoder import convert, decode_motion
from core.types import FrameDefinition, JointDefinition, MotionDefinition, ParamDefinition

router = APIRouter(prefix="/motions", tags=["motions"])

# Loader output keeps numbers as text; the encoder validates them
NumericField = Union[int, str]


class ParamModel(BaseModel):
    id: NumericField
    value: NumericField


class ExtraModel(BaseModel):
    function: NumericField
    params: List[ParamModel] = Field(default_factory=list)


class JointModel(BaseModel):
    id: NumericField
    value: NumericField


class FrameModel(BaseModel):
    id: NumericField
    time: NumericField
    joints: List[JointModel] = Field(default_factory=list)


class MotionModel(BaseModel):
    """One <motion> element of a motion file"""
    id: NumericField
    name: str
    extra: ExtraModel
    frameNum: NumericField
    frames: List[FrameModel] = Field(default_factory=list)

    def to_definition(self) -> MotionDefinition:
        return MotionDefinition(
            slot=self.id,
            name=self.name,
            function=self.extra.function,
            params=tuple(ParamDefinition(p.id, p.value) for p in self.extra.params),
            frame_count=self.frameNum,
            frames=tuple(
                FrameDefinition(
                    id=f.id,
                    time=f.time,
                    joints=tuple(JointDefinition(j.id, j.value) for j in f.joints),
                )
                for f in self.frames
            ),
        )


class EncodeRequest(BaseModel):
    motions: List[MotionModel]


@router.post("/encode")
def encode_motions(req: EncodeRequest):
    """Encode motions; failures are reported per motion, not raised."""
    results = [convert(m.to_definition()).to_dict() for m in req.motions]
    return {
        "success": all(r["converted"] for r in results),
        "results": results,
    }


class DecodeRequest(BaseModel):
    wire: str
    joints_per_frame: int = Field(ge=0)


@router.post("/decode")
def decode_wire(req: DecodeRequest):
    """Split wire text back into fields (diagnostics). Malformed text -> 400."""
    return {"success": True, "motion": asdict(decode_motion(req.wire, req.joints_per_frame))}
