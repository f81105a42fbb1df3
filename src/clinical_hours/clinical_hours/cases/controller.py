from __future__ import annotations

from flask import Flask, request

from ..common.web import current_actor, json_body, ok, ok_page, query_int, to_jsonable
from ..container import Container
from .model import ClinicalCase
from .payload import audiogram_to_dict, findings_to_dict, patient_info_to_dict, tests_to_list


def case_to_json(case: ClinicalCase) -> dict:
    return {
        "case_id": case.case_id,
        "case_number": case.case_number,
        "student_id": case.student_id,
        "supervisor_id": case.supervisor_id,
        "patient_info": patient_info_to_dict(case.patient_info),
        "tests_performed": tests_to_list(case.tests_performed),
        "audiogram": audiogram_to_dict(case.audiogram),
        "findings": findings_to_dict(case.findings),
        "recommendations": case.recommendations,
        "supervisor_approval": to_jsonable(case.approval),
        "is_completed": case.is_completed,
        "session_date": case.session_date.isoformat(),
        "session_duration": case.session_duration,
        "total_tests_count": case.total_tests_count,
        "completed_tests_count": case.completed_tests_count,
        "created_at": to_jsonable(case.created_at),
    }


def register(app: Flask, container: Container) -> None:
    service = container.case_service

    @app.route("/api/clinical-cases/enums", methods=["GET"], endpoint="case_enums")
    def enums():
        current_actor()
        return ok(service.enums())

    @app.route("/api/clinical-cases", methods=["GET"], endpoint="case_list")
    def list_cases():
        page = service.list(
            current_actor(),
            student_id=query_int("student_id"),
            status=request.args.get("status"),
            age_group=request.args.get("age_group"),
            test_type=request.args.get("test_type"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            page=request.args.get("page"),
            limit=request.args.get("limit"),
        )
        return ok_page(page, case_to_json)

    @app.route("/api/clinical-cases", methods=["POST"], endpoint="case_create")
    def create():
        case = service.create(current_actor(), json_body())
        return ok(case_to_json(case), status=201)

    @app.route("/api/clinical-cases/bulk-review", methods=["PUT"], endpoint="case_bulk_review")
    def bulk_review():
        body = json_body()
        result = service.bulk_review(
            current_actor(),
            body.get("case_ids"),
            status=body.get("status"),
            comments=body.get("comments"),
        )
        return ok(result, message=f"{result.modified_count} cases updated")

    @app.route("/api/clinical-cases/<int:case_id>", methods=["GET"], endpoint="case_get")
    def get(case_id: int):
        return ok(case_to_json(service.get(current_actor(), case_id)))

    @app.route("/api/clinical-cases/<int:case_id>", methods=["PUT"], endpoint="case_update")
    def update(case_id: int):
        return ok(case_to_json(service.update(current_actor(), case_id, json_body())))

    @app.route("/api/clinical-cases/<int:case_id>", methods=["DELETE"], endpoint="case_delete")
    def delete(case_id: int):
        service.delete(current_actor(), case_id)
        return ok({}, message="Clinical case deleted")

    @app.route("/api/clinical-cases/<int:case_id>/review", methods=["PUT"], endpoint="case_review")
    def review(case_id: int):
        body = json_body()
        case = service.review(current_actor(), case_id, status=body.get("status"), comments=body.get("comments"))
        return ok(case_to_json(case))
