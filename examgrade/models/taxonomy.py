"""学科分类、课程与考试相关数据模型

这些实体由管理端维护，评估流水线只读取其中的名称和题目信息。
"""

from typing import Optional

from pydantic import BaseModel, Field


class TaxonomyItem(BaseModel):
    """分类维度的通用结构（资格、考试局、学科、年级）"""

    id: str = Field(..., description="ID")
    name: str = Field(..., description="显示名称")
    description: Optional[str] = Field(None, description="描述")


class Qualification(TaxonomyItem):
    """资格（如 GCSE、A-Level）"""


class Board(TaxonomyItem):
    """考试局（如 AQA、Edexcel）"""


class Subject(TaxonomyItem):
    """学科"""


class YearGroup(TaxonomyItem):
    """年级"""


class Course(BaseModel):
    """课程：每个分类维度各取一个"""

    id: str = Field(..., description="课程 ID")
    name: str = Field(..., description="课程名称")
    description: Optional[str] = Field(None, description="课程描述")
    qualification_id: Optional[str] = Field(None, description="资格 ID")
    board_id: Optional[str] = Field(None, description="考试局 ID")
    subject_id: Optional[str] = Field(None, description="学科 ID")
    year_group_id: Optional[str] = Field(None, description="年级 ID")


class Exam(BaseModel):
    """考试"""

    id: str = Field(..., description="考试 ID")
    name: str = Field(..., description="考试名称")
    course_id: str = Field(..., description="所属课程 ID")


class Question(BaseModel):
    """题目，考试创建后不再修改"""

    id: str = Field(..., description="题目 ID")
    exam_id: str = Field(..., description="所属考试 ID")
    text: str = Field(..., description="题干")
    image_url: Optional[str] = Field(None, description="题目图片 URL")
    max_marks: int = Field(..., ge=1, description="满分")
    question_order: int = Field(0, description="题目顺序")
