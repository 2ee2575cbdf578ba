from docx import Document


def _format_answer(value) -> str:
    if value is None or value == "":
        return "—"
    if isinstance(value, bool):
        return "True" if value else "False"
    return str(value)


def generate_report_docx(report: dict, file_path: str):
    doc = Document()

    # Title
    doc.add_heading(f"Result: {report['evaluation']['title']}", level=1)

    # Summary
    doc.add_heading("Summary", level=2)
    for line in report["summary"]:
        doc.add_paragraph(line)

    # Scores
    doc.add_heading("Overall Score", level=2)
    scores = report["scores"]
    doc.add_paragraph(
        f"Score: {scores['score']} / {scores['max_score']} "
        f"({scores['percentage']}%)"
    )
    doc.add_paragraph(f"Grade: {scores['grade']} ({scores['mention']})")
    doc.add_paragraph(f"Status: {scores['status']}")

    # Questions
    doc.add_heading("Questions", level=2)
    for detail in report["details"]:
        doc.add_paragraph(f"{detail['position'] + 1}. {detail['question']}", style="List Number")
        awarded = "pending" if detail["score"] is None else f"{detail['score']:g}"
        doc.add_paragraph(f"Answer: {_format_answer(detail['answer'])}")
        if "correct_answer" in detail:
            doc.add_paragraph(f"Correct answer: {_format_answer(detail['correct_answer'])}")
        doc.add_paragraph(f"Points: {awarded} / {detail['max_score']}")
        if detail.get("feedback"):
            doc.add_paragraph(f"Feedback: {detail['feedback']}")

    # Attachments
    if report["attachments"]:
        doc.add_heading("Attachments", level=2)
        for reference in report["attachments"]:
            doc.add_paragraph(reference, style="List Bullet")

    doc.save(file_path)
