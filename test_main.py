from unittest.mock import patch, MagicMock

import pytest
from fastapi.testclient import TestClient

# Import the application from main.py
import main
from main import app, get_module_store
from module_store import ModuleStore, ModuleStoreError


XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture
def client(store):
    """
    Fixture providing a TestClient whose endpoints use the in-memory store.

    The lifespan is not run, so no database file is touched.

    Args:
        store: Fixture providing an in-memory ModuleStore
    """
    app.dependency_overrides[get_module_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def course_form():
    return {
        "title": "Go 101",
        "description": "Learn Go",
        "bannerImage": "https://cdn.example.com/go.png",
    }


def _upload(client, payload, form):
    files = {"file": ("course.xlsx", payload, XLSX_MEDIA_TYPE)} if payload is not None else None
    return client.post("/modules/", data=form, files=files)


class TestSubmitCourseEndpoint:
    """
    Tests for POST /modules/.
    """

    def test_upload_success(self, client, make_xlsx, go_course_rows, course_columns, course_form):
        """
        Uploading the Go 101 spreadsheet stores the module and answers with
        its summary.
        """
        payload = make_xlsx(go_course_rows, columns=course_columns)

        response = _upload(client, payload, course_form)

        assert response.status_code == 200
        assert response.json() == {
            "message": "File uploaded and data saved successfully.",
            "module": {"title": "Go 101", "totalSubmodules": 2, "totalTime": 30}
        }

    def test_missing_file(self, client, course_form):
        response = _upload(client, None, course_form)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "No file uploaded."
        assert body["error_type"] == "ValidationError"
        assert body["success"] is False

    @pytest.mark.parametrize(
        "missing, message",
        [
            ("title", "Course title and description are required."),
            ("description", "Course title and description are required."),
            ("bannerImage", "Banner image is required."),
        ]
    )
    def test_missing_metadata(self, client, make_xlsx, go_course_rows, course_form, missing, message):
        form = {key: value for key, value in course_form.items() if key != missing}

        response = _upload(client, make_xlsx(go_course_rows), form)

        assert response.status_code == 400
        assert response.json()["error"] == message

    def test_unreadable_file(self, client, course_form):
        response = _upload(client, b"this is not a workbook", course_form)

        assert response.status_code == 400
        assert response.json()["error_type"] == "DecodeError"

    def test_storage_failure(self, make_xlsx, go_course_rows, course_form):
        failing_store = MagicMock(spec=ModuleStore)
        failing_store.upsert_by_key.side_effect = ModuleStoreError("database is locked")
        app.dependency_overrides[get_module_store] = lambda: failing_store
        try:
            response = _upload(TestClient(app), make_xlsx(go_course_rows), course_form)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to save the course module."
        assert response.json()["error_type"] == "PersistenceError"

    def test_resubmission_replaces_course(self, client, make_xlsx, go_course_rows, course_form):
        _upload(client, make_xlsx(go_course_rows), course_form)
        replacement = make_xlsx([
            {"Submodule Title": "Concurrency", "Section Title": "Channels", "Section Time (minutes)": 15},
        ])

        response = _upload(client, replacement, course_form)

        assert response.json()["module"] == {"title": "Go 101", "totalSubmodules": 1, "totalTime": 15}
        courses = client.get("/modules/courses").json()["courses"]
        assert len(courses) == 1
        assert courses[0]["chapters"] == 1


class TestListCoursesEndpoint:
    """
    Tests for GET /modules/courses.
    """

    def test_empty_listing(self, client):
        response = client.get("/modules/courses")

        assert response.status_code == 200
        assert response.json() == {"message": "Course details fetched successfully.", "courses": []}

    def test_listing_after_uploads(self, client, make_xlsx, go_course_rows, course_form):
        _upload(client, make_xlsx(go_course_rows), course_form)
        _upload(client, make_xlsx(go_course_rows[:1]), {**course_form, "title": "Rust 101", "bannerImage": "rust.png"})

        response = client.get("/modules/courses")

        assert response.status_code == 200
        courses = response.json()["courses"]
        assert [course["title"] for course in courses] == ["Go 101", "Rust 101"]
        assert courses[0] == {
            "title": "Go 101",
            "id": courses[0]["id"],
            "moduleId": "go-101",
            "description": "Learn Go",
            "chapters": 2,
            "time": 30,
            "image": "https://cdn.example.com/go.png",
        }
        assert courses[1]["moduleId"] == "rust-101"
        assert courses[1]["time"] == 10

    def test_listing_storage_failure(self):
        failing_store = MagicMock(spec=ModuleStore)
        failing_store.find_all.side_effect = ModuleStoreError("connection refused")
        app.dependency_overrides[get_module_store] = lambda: failing_store
        try:
            response = TestClient(app).get("/modules/courses")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to fetch course details."


class TestLifespan:
    """
    Tests for store bootstrap at application startup.
    """

    def test_startup_opens_store(self):
        in_memory = main.settings.model_copy(update={"DATABASE_URL": "sqlite://"})

        with patch.object(main, "settings", in_memory):
            with TestClient(app) as client:
                assert isinstance(app.state.module_store, ModuleStore)
                response = client.get("/modules/courses")

        assert response.status_code == 200

    def test_unreachable_store_aborts_startup(self):
        in_memory = main.settings.model_copy(update={"DATABASE_URL": "sqlite://"})

        with patch.object(main, "settings", in_memory), \
             patch.object(ModuleStore, "ping", side_effect=ModuleStoreError("Storage backend unreachable")), \
             patch.object(main.logger, "critical") as log_critical:
            with pytest.raises(ModuleStoreError):
                with TestClient(app):
                    pass

        log_critical.assert_called_once()
