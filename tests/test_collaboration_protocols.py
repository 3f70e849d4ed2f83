import pytest
from google.api_core.exceptions import Aborted

from artisan_sync.entities import Collaboration, ProjectApplication
from fakes import messages


def _apply(store, volunteer_id, project_id="1"):
    return store.add("projectApplications", {
        "projectId": project_id,
        "volunteerId": volunteer_id,
        "artisanId": "artisan_1",
        "status": "pending",
    })


def _application(session, application_id):
    return next(a for a in session.state.project_applications if a.id == application_id)


def test_volunteer_application_reaches_the_artisan(make_session):
    artisan = make_session("artisan_1")
    volunteer = make_session("volunteer_2")
    project = next(p for p in volunteer.state.projects if p.id == "1")

    assert volunteer.protocols.apply_for_project(project)

    assert len(artisan.state.project_applications) == 1
    application = artisan.state.project_applications[0]
    assert application.volunteerId == "volunteer_2"
    assert application.status == "pending"
    assert messages(volunteer) == ['Application sent for "Online Store Setup"!']


def test_accepting_declines_every_other_pending_application(store, make_session):
    artisan = make_session("artisan_1")
    first = _apply(store, "volunteer_1")
    second = _apply(store, "volunteer_2")
    commits = store.commits

    assert artisan.protocols.respond_to_application(_application(artisan, first), "accepted")

    assert store.commits == commits + 1
    applications = store.collection("projectApplications")
    assert applications[first]["status"] == "accepted"
    assert applications[second]["status"] == "declined"
    assert store.collection("projects")["1"]["status"] == "In Progress"

    collaborations = list(store.collection("collaborations").values())
    assert len(collaborations) == 1
    assert collaborations[0]["volunteerId"] == "volunteer_1"
    assert collaborations[0]["status"] == "in-progress"
    assert len(artisan.state.collaborations) == 1
    assert messages(artisan) == ["You have accepted Ananya Sharma's application."]


def test_second_acceptance_is_refused(store, make_session):
    artisan = make_session("artisan_1")
    first = _apply(store, "volunteer_1")
    second = _apply(store, "volunteer_2")
    stale = _application(artisan, second)
    artisan.protocols.respond_to_application(_application(artisan, first), "accepted")

    assert not artisan.protocols.respond_to_application(stale, "accepted")

    assert len(store.collection("collaborations")) == 1
    assert store.collection("projectApplications")[second]["status"] == "declined"


def test_acceptance_requires_an_open_project(store, make_session):
    artisan = make_session("artisan_1")
    application_id = _apply(store, "volunteer_1")
    store.collection("projects")["1"]["status"] = "In Progress"

    assert not artisan.protocols.respond_to_application(_application(artisan, application_id), "accepted")

    assert store.collection("projectApplications")[application_id]["status"] == "pending"
    assert store.collection("collaborations") == {}


def test_failed_acceptance_commit_writes_nothing(store, make_session):
    artisan = make_session("artisan_1")
    first = _apply(store, "volunteer_1")
    second = _apply(store, "volunteer_2")
    store.fail_writes["projects"] = Aborted("Too much contention on these documents.")

    with pytest.raises(Aborted):
        artisan.protocols.respond_to_application(_application(artisan, first), "accepted")

    applications = store.collection("projectApplications")
    assert applications[first]["status"] == "pending"
    assert applications[second]["status"] == "pending"
    assert store.collection("collaborations") == {}
    assert store.collection("projects")["1"]["status"] == "Open"


def test_only_the_owning_artisan_can_respond(store, make_session):
    other = make_session("artisan_2")
    application_id = _apply(store, "volunteer_1")
    application = other.protocols.store.get("projectApplications", application_id)

    assert not other.protocols.respond_to_application(ProjectApplication.from_doc(application_id, application), "accepted")
    assert store.collection("projectApplications")[application_id]["status"] == "pending"


def test_decline_is_a_single_update(store, make_session):
    artisan = make_session("artisan_1")
    application_id = _apply(store, "volunteer_2")

    assert artisan.protocols.respond_to_application(_application(artisan, application_id), "declined")

    assert store.collection("projectApplications")[application_id]["status"] == "declined"
    assert messages(artisan) == ["Application for Karan Mehta declined."]



def test_accepted_application_cannot_be_declined(store, make_session):
    artisan = make_session("artisan_1")
    application_id = _apply(store, "volunteer_1")
    stale = _application(artisan, application_id)
    artisan.protocols.respond_to_application(stale, "accepted")

    assert not artisan.protocols.respond_to_application(stale, "declined")

    assert store.collection("projectApplications")[application_id]["status"] == "accepted"
    assert [c["status"] for c in store.collection("collaborations").values()] == ["in-progress"]
    assert "This application is no longer pending." in messages(artisan)

def _accepted_collaboration(store, artisan, volunteer_id="volunteer_1"):
    application_id = _apply(store, volunteer_id)
    artisan.protocols.respond_to_application(_application(artisan, application_id), "accepted")
    return artisan.state.collaborations[0]


def test_end_collaboration_completes_project_and_adds_testimonial(store, make_session):
    artisan = make_session("artisan_1")
    collaboration = _accepted_collaboration(store, artisan)

    assert artisan.protocols.end_collaboration(collaboration, "Wonderful photographs.", 5)

    stored = store.collection("collaborations")[collaboration.id]
    assert stored["status"] == "completed"
    assert stored["rating"] == 5
    assert store.collection("projects")["1"]["status"] == "Completed"
    testimonials = store.collection("users")["volunteer_1"]["testimonials"]
    assert len(testimonials) == 2
    assert testimonials[-1]["quote"] == "Wonderful photographs."
    assert testimonials[-1]["artisanName"] == "Ravi Kumar"


def test_end_collaboration_without_feedback_leaves_testimonials(store, make_session):
    artisan = make_session("artisan_1")
    collaboration = _accepted_collaboration(store, artisan)

    assert artisan.protocols.end_collaboration(collaboration, "  ", 4)

    assert len(store.collection("users")["volunteer_1"]["testimonials"]) == 1


def test_collaboration_ends_once(store, make_session):
    artisan = make_session("artisan_1")
    collaboration = _accepted_collaboration(store, artisan)
    artisan.protocols.end_collaboration(collaboration, "Thanks!", 5)

    assert not artisan.protocols.end_collaboration(collaboration, "Thanks again!", 5)
    assert len(store.collection("users")["volunteer_1"]["testimonials"]) == 2


def _completed_collaboration(store, artisan, volunteer_id="volunteer_2"):
    collaboration_id = store.add("collaborations", {
        "projectId": "1",
        "volunteerId": volunteer_id,
        "artisanId": "artisan_1",
        "status": "completed",
    })
    return next(c for c in artisan.state.collaborations if c.id == collaboration_id)


def test_certificate_is_issued_once(store, make_session, text_generator):
    artisan = make_session("artisan_1")
    volunteer = make_session("volunteer_2")
    collaboration = _completed_collaboration(store, artisan)

    assert artisan.protocols.issue_certificate(collaboration)

    doc = store.collection("users")["volunteer_2"]
    assert doc["projectsCompleted"] == 1
    assert doc["completedProjects"][-1]["id"] == collaboration.id
    assert doc["completedProjects"][-1]["projectName"] == "Online Store Setup"
    assert doc["completedProjects"][-1]["certificateText"] == text_generator.text
    assert text_generator.calls == [
        ("Ravi Kumar", "Karan Mehta", "Online Store Setup", 40, ["Web Development", "Photography"], "en"),
    ]
    assert messages(volunteer) == ['You\'ve received a certificate for "Online Store Setup"!']
    assert volunteer.notifications.snapshot()[0].link.page == "volunteers"

    assert not artisan.protocols.issue_certificate(collaboration)

    assert len(text_generator.calls) == 1
    assert store.collection("users")["volunteer_2"]["projectsCompleted"] == 1
    assert "A certificate has already been issued for this project." in messages(artisan)


def test_certificate_recheck_uses_the_stored_volunteer(store, make_session, text_generator):
    artisan = make_session("artisan_1")
    collaboration = _completed_collaboration(store, artisan)
    # written by another client; this session has not seen it yet
    store.collection("users")["volunteer_2"]["completedProjects"] = [
        {"id": collaboration.id, "projectName": "Online Store Setup", "artisanName": "Ravi Kumar"},
    ]

    assert not artisan.protocols.issue_certificate(collaboration)

    assert len(store.collection("users")["volunteer_2"]["completedProjects"]) == 1
    assert store.collection("users")["volunteer_2"]["projectsCompleted"] == 0


def test_certificate_generation_failure_writes_nothing(store, make_session, text_generator):
    artisan = make_session("artisan_1")
    collaboration = _completed_collaboration(store, artisan)
    text_generator.fail = True

    assert not artisan.protocols.issue_certificate(collaboration)

    assert store.collection("users")["volunteer_2"]["completedProjects"] == []
    assert messages(artisan) == ["Failed to generate or issue certificate."]


def test_certificate_needs_the_owning_artisan(store, make_session, text_generator):
    artisan = make_session("artisan_1")
    collaboration_id = store.add("collaborations", {
        "projectId": "1",
        "volunteerId": "volunteer_2",
        "artisanId": "artisan_2",
        "status": "completed",
    })
    foreign = Collaboration.from_doc(collaboration_id, store.get("collaborations", collaboration_id))

    assert not artisan.protocols.issue_certificate(foreign)

    assert text_generator.calls == []
    assert store.collection("users")["volunteer_2"]["completedProjects"] == []


def test_certificate_without_a_generator_fails_cleanly(store, make_session):
    artisan = make_session("artisan_1")
    collaboration = _completed_collaboration(store, artisan)
    artisan.protocols.text_generator = None

    assert not artisan.protocols.issue_certificate(collaboration)

    assert store.collection("users")["volunteer_2"]["completedProjects"] == []
    assert messages(artisan) == ["Failed to generate or issue certificate."]
