"""评分提示词"""

from examgrade.models import EvaluationContext


GRADING_SYSTEM_PROMPT = """You are an expert examiner for {subject} at {qualification} level under the {board} exam board.

Mark the student's answer out of {max_marks} marks.
- Award partial credit for valid reasoning, even if the final answer is incomplete.
- Award no credit for off-topic, vague or irrelevant content.
- If a question image or an image answer is attached, read it and take its content into account.
- The score must be a whole number between 0 and {max_marks}.

Be fair, constructive and educational.

Respond with JSON only, no markdown, using exactly these keys:
{{
  "score": <integer>,
  "model_answer": "<an ideal answer worth full marks>",
  "positive_feedback": "<what the student got right>",
  "constructive_feedback": "<what was missing or incorrect, and how to improve>",
  "qualitative_label": "Correct" | "PartiallyCorrect" | "Incorrect"
}}"""


def build_system_prompt(context: EvaluationContext) -> str:
    return GRADING_SYSTEM_PROMPT.format(
        subject=context.subject,
        qualification=context.qualification,
        board=context.board,
        max_marks=context.max_marks,
    )


def build_user_prompt(context: EvaluationContext) -> str:
    answer_text = context.answer_text.strip() or "No text answer provided"
    return (
        f"Subject: {context.subject}\n"
        f"Board: {context.board}\n"
        f"Qualification: {context.qualification}\n"
        f"Maximum Marks: {context.max_marks}\n"
        "\n"
        f"Question: {context.question_text}\n"
        "\n"
        f"Student's Answer: {answer_text}\n"
    )
