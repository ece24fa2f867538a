from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, func

from app.db.base_class import Base

CATEGORIES = (
    "Quantitative Aptitude",
    "Logical Reasoning and Data Interpretation",
    "Verbal Ability and Reading Comprehension",
)
QUESTION_DIFFICULTIES = ("easy", "medium", "hard")


class Question(Base):
    """Aptitude question bank entry (read-only through the API)."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String(100), nullable=False, index=True)
    difficulty = Column(String(10), nullable=False, index=True)
    question = Column(Text, nullable=False)

    option_a = Column(Text, nullable=False)
    option_b = Column(Text, nullable=False)
    option_c = Column(Text, nullable=False)
    option_d = Column(Text, nullable=False)
    correct_answer = Column(String(1), nullable=False)  # A-D
    explanation = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def options(self) -> dict:
        return {"A": self.option_a, "B": self.option_b, "C": self.option_c, "D": self.option_d}
