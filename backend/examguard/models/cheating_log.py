from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Integer, Float, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from ..core.database import Base
from ..core.violations import ViolationType


class CheatingLog(Base):
    """Per (exam, student) violation aggregate. Counts only ever grow."""
    __tablename__ = "cheating_logs"
    __table_args__ = (
        UniqueConstraint("exam_id", "email", name="uq_cheating_logs_exam_email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    exam_id = Column(String, index=True, nullable=False)
    email = Column(String, nullable=False)
    username = Column(String, nullable=False)

    no_face_count = Column(Integer, nullable=False, default=0)
    multiple_face_count = Column(Integer, nullable=False, default=0)
    cell_phone_count = Column(Integer, nullable=False, default=0)
    prohibited_object_count = Column(Integer, nullable=False, default=0)
    voice_detected_count = Column(Integer, nullable=False, default=0)
    attention_drift_count = Column(Integer, nullable=False, default=0)
    tab_switch_count = Column(Integer, nullable=False, default=0)
    copy_paste_count = Column(Integer, nullable=False, default=0)
    right_click_count = Column(Integer, nullable=False, default=0)
    print_screen_count = Column(Integer, nullable=False, default=0)
    dev_tools_count = Column(Integer, nullable=False, default=0)
    full_screen_exit_count = Column(Integer, nullable=False, default=0)
    window_blur_count = Column(Integer, nullable=False, default=0)
    application_switch_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    screenshots = relationship(
        "CheatingLogScreenshot",
        back_populates="log",
        order_by="CheatingLogScreenshot.id",
        lazy="selectin",
    )

    def count_for(self, violation_type: ViolationType) -> int:
        return getattr(self, violation_type.column) or 0

    @property
    def total_violations(self) -> int:
        return sum(self.count_for(vt) for vt in ViolationType)

    def __repr__(self):
        return f"<CheatingLog exam={self.exam_id} email={self.email} total={self.total_violations}>"


class CheatingLogScreenshot(Base):
    __tablename__ = "cheating_log_screenshots"

    id = Column(Integer, primary_key=True, index=True)
    log_id = Column(Integer, ForeignKey("cheating_logs.id", ondelete="CASCADE"), index=True, nullable=False)
    url = Column(Text, nullable=False)                          # hosted URL or inline data URI
    type = Column(String, nullable=False)
    detected_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    confidence = Column(Float, nullable=True)

    log = relationship("CheatingLog", back_populates="screenshots")
