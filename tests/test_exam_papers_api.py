import re

from .conftest import bearer, make_course, make_paper, make_question, make_student, make_subject


def _create(client, headers, subjects, **overrides):
    payload = {
        "paper_name": "DCA Final",
        "paper_type": "Online",
        "correct_marks_per_question": 2,
        "time": 45,
        "subjects": [
            {"subject_id": str(s["_id"]), "subject_name": s["name"], "number_of_questions": 10}
            for s in subjects
        ]
        + [{"subject_id": "", "subject_name": ""}],
    }
    payload.update(overrides)
    return client.post("/api/exam-papers", json=payload, headers=headers)


def test_new_paper_is_inactive_with_computed_marks(client, admin_headers, db):
    office = make_subject(db, "OFF", "Office")
    response = _create(client, admin_headers, [office], status="active")
    assert response.status_code == 201
    paper = response.json()["data"]
    assert re.fullmatch(r"P\d{4}", paper["paper_id"])
    assert paper["status"] == "inactive"
    assert paper["paper_type"] == "online"
    assert len(paper["subjects"]) == 1
    assert paper["subjects"][0]["theoretical_marks"] == 20
    assert paper["questions_uploaded"] is False


def test_end_date_before_start_date(client, admin_headers, db):
    office = make_subject(db, "OFF", "Office")
    response = _create(
        client,
        admin_headers,
        [office],
        start_date="2025-05-10T10:00:00Z",
        end_date="2025-05-01T10:00:00Z",
    )
    assert response.status_code == 400


def test_activation_requires_questions_for_every_subject(client, admin_headers, db):
    office, internet = make_subject(db, "OFF", "Office"), make_subject(db, "INT", "Internet")
    paper = make_paper(db, [office, internet])
    make_question(db, paper, office)
    url = f"/api/exam-papers/{paper['_id']}/status"

    refused = client.put(url, json={"status": "active"}, headers=admin_headers)
    assert refused.status_code == 400
    assert refused.json()["message"] == (
        'Subject "Internet" does not have any questions. '
        "All subjects must have questions to activate the paper."
    )

    make_question(db, paper, internet)
    accepted = client.put(url, json={"status": "active"}, headers=admin_headers)
    assert accepted.json()["message"] == 'Exam paper status updated to "active" successfully'
    assert accepted.json()["data"]["questions_uploaded"] is True


def test_edit_adding_empty_subject_deactivates(client, admin_headers, db):
    office, internet = make_subject(db, "OFF", "Office"), make_subject(db, "INT", "Internet")
    paper = make_paper(db, [office], status="active")
    make_question(db, paper, office)
    rows = [
        {"subject_id": str(s["_id"]), "subject_name": s["name"], "number_of_questions": 5}
        for s in (office, internet)
    ]
    response = client.put(f"/api/exam-papers/{paper['_id']}", json={"subjects": rows}, headers=admin_headers)
    assert response.json()["data"]["status"] == "inactive"


def test_apply_page_filter(client, admin_headers, db):
    office = make_subject(db, "OFF", "Office")
    make_paper(db, [office], status="active", paper_id="P1001")
    make_paper(db, [office], status="active", exam_type="Practice", paper_id="P1002")
    make_paper(db, [office], status="inactive", paper_id="P1003")
    make_paper(db, [office], paper_type="offline", status="active", paper_id="P1004")

    listed = client.get("/api/exam-papers", params={"forApplyPage": True}, headers=admin_headers)
    assert sorted(p["paper_id"] for p in listed.json()["data"]) == ["P1001", "P1004"]

    offline = client.get("/api/exam-papers", params={"paperType": "OFFLINE"}, headers=admin_headers)
    assert [p["paper_id"] for p in offline.json()["data"]] == ["P1004"]


def test_delete_paper_removes_its_questions(client, admin_headers, db):
    office = make_subject(db, "OFF", "Office")
    paper = make_paper(db, [office])
    make_question(db, paper, office)
    assert client.delete(f"/api/exam-papers/{paper['_id']}", headers=admin_headers).status_code == 200
    assert db["questions"].count_documents({}) == 0


def test_question_upload_and_placeholders(client, admin_headers, db):
    office = make_subject(db, "OFF", "Office")
    paper = make_paper(db, [office])
    response = client.post(
        "/api/questions/batch",
        json={
            "questions": [
                {"paper_id": "P1234", "subject_id": str(office["_id"]), "question_text": "Ctrl+C?", "option_a": "Copy", "correct_option": "A"},
                {"paper_id": str(paper["_id"]), "subject_id": str(office["_id"])},
            ]
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["message"] == "2 questions added"

    listed = client.get("/api/questions", params={"paperId": "P1234"}, headers=admin_headers).json()["data"]
    blank = listed[1]
    assert blank["question_text"] == "Question 2"
    assert blank["option_c"] == "Option C"
    assert blank["correct_option"] == "A"
    assert blank["subject_name"] == "Office"


def test_question_for_foreign_subject_is_rejected(client, admin_headers, db):
    office, other = make_subject(db, "OFF", "Office"), make_subject(db, "OTH", "Other")
    make_paper(db, [office])
    response = client.post(
        "/api/questions",
        json={"paper_id": "P1234", "subject_id": str(other["_id"]), "question_text": "?"},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_students_never_see_answers(client, db):
    office = make_subject(db, "OFF", "Office")
    paper = make_paper(db, [office])
    make_question(db, paper, office, correct="C")
    student = make_student(db, make_course(db))
    listed = client.get(
        "/api/questions", params={"paperId": "P1234"}, headers=bearer(student, "student")
    ).json()["data"]
    assert listed[0]["correct_option"] is None


def test_marks_per_question_edit_recomputes_stored_rows(client, admin_headers, db):
    office = make_subject(db, "OFF", "Office")
    paper = _create(client, admin_headers, [office]).json()["data"]
    url = f"/api/exam-papers/{paper['id']}"

    updated = client.put(url, json={"correct_marks_per_question": 3}, headers=admin_headers).json()["data"]
    assert updated["subjects"][0]["theoretical_marks"] == 30
    assert db["exam_papers"].find_one()["subjects"][0]["theoretical_marks"] == 30


def test_resubmitted_row_follows_its_question_count(client, admin_headers, db):
    office, internet = make_subject(db, "OFF", "Office"), make_subject(db, "INT", "Internet")
    paper = _create(client, admin_headers, [office, internet]).json()["data"]
    rows = paper["subjects"]
    rows[0]["number_of_questions"] = 15
    rows[1]["theoretical_marks"] = 50

    updated = client.put(
        f"/api/exam-papers/{paper['id']}", json={"subjects": rows}, headers=admin_headers
    ).json()["data"]
    assert [r["theoretical_marks"] for r in updated["subjects"]] == [30, 50]
