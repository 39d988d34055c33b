"""
Violation vocabulary shared by the API and the proctoring agent.

Each violation type has a camelCase wire count field (``tabSwitchCount``) and a
snake_case column on ``cheating_logs`` (``tab_switch_count``).
"""
import re
from enum import Enum
from typing import Dict


class ViolationType(str, Enum):
    NO_FACE = "noFace"
    MULTIPLE_FACE = "multipleFace"
    CELL_PHONE = "cellPhone"
    PROHIBITED_OBJECT = "prohibitedObject"
    VOICE_DETECTED = "voiceDetected"
    ATTENTION_DRIFT = "attentionDrift"
    TAB_SWITCH = "tabSwitch"
    COPY_PASTE = "copyPaste"
    RIGHT_CLICK = "rightClick"
    PRINT_SCREEN = "printScreen"
    DEV_TOOLS = "devTools"
    FULL_SCREEN_EXIT = "fullScreenExit"
    WINDOW_BLUR = "windowBlur"
    APPLICATION_SWITCH = "applicationSwitch"

    @property
    def count_field(self) -> str:
        return f"{self.value}Count"

    @property
    def column(self) -> str:
        return re.sub(r"(?<!^)(?=[A-Z])", "_", self.value).lower() + "_count"

    @property
    def is_camera_sourced(self) -> bool:
        return self in CAMERA_VIOLATION_TYPES


CAMERA_VIOLATION_TYPES = frozenset({
    ViolationType.NO_FACE,
    ViolationType.MULTIPLE_FACE,
    ViolationType.CELL_PHONE,
    ViolationType.PROHIBITED_OBJECT,
    ViolationType.VOICE_DETECTED,
    ViolationType.ATTENTION_DRIFT,
})

COUNT_FIELDS: Dict[str, ViolationType] = {vt.count_field: vt for vt in ViolationType}


def counts_to_wire(counts: Dict[ViolationType, int]) -> Dict[str, int]:
    return {vt.count_field: int(counts.get(vt, 0)) for vt in ViolationType}
