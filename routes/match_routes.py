"""Live-scoring match route registration."""

from flask import Response, jsonify, request
from flask_login import current_user, login_required

from engine.errors import MatchNotFound, ScoringError, ValidationError


def error_status(error: ScoringError) -> int:
    """HTTP status for an engine error: 400 validation, 404 missing, 409 state or conflict."""
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, MatchNotFound):
        return 404
    return 409


def register_match_routes(
    app,
    *,
    db,
    DBTeam,
    make_store,
    make_service,
):
    def _json_body():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    def _check_access(store, match_id):
        """Return an error response unless the current user owns the match or is an admin."""
        owner = store.owner_of(match_id)
        if owner != current_user.id and not current_user.is_admin:
            app.logger.warning(f"User {current_user.id} denied access to match {match_id}")
            return jsonify({"error": "Forbidden", "message": "You do not have access to this match"}), 403
        return None

    def _run(match_id, action, success_status=200, raw=False):
        """Shared plumbing: access check, engine call, error mapping.

        With ``raw=True`` the action returns a ready ``Response``.
        """
        store = make_store()
        try:
            if match_id is not None:
                denied = _check_access(store, match_id)
                if denied is not None:
                    return denied
            body = action(make_service(store))
            if raw:
                return body
            return jsonify(body), success_status
        except ScoringError as e:
            status = error_status(e)
            app.logger.info(f"[LiveScoring] {e.kind} on match {match_id}: {e.message}")
            return jsonify(e.to_dict()), status
        except Exception as e:
            db.session.rollback()
            app.logger.error(f"[LiveScoring] Unexpected error on match {match_id}: {e}", exc_info=True)
            return jsonify({"error": "ServerError", "message": "Internal server error"}), 500

    @app.route("/api/matches", methods=["POST"])
    @login_required
    def create_live_match():
        def action(service):
            data = _json_body()
            team1_id = data.get("team1_id")
            team2_id = data.get("team2_id")
            if team1_id is None or team2_id is None:
                raise ValidationError("team1_id and team2_id are required")

            for team_id in (team1_id, team2_id):
                try:
                    team = db.session.get(DBTeam, int(team_id))
                except (TypeError, ValueError):
                    team = None
                if team is None:
                    raise ValidationError(f"Team {team_id} not found")
                if team.user_id != current_user.id and not current_user.is_admin:
                    raise ValidationError(f"Team {team_id} does not belong to you")

            match = service.create_match(
                team1_id,
                team2_id,
                data.get("overs"),
                user_id=current_user.id,
                toss_winner=data.get("toss_winner"),
                toss_decision=data.get("toss_decision"),
                venue=data.get("venue"),
            )
            app.logger.info(f"[LiveScoring] Match {match.match_id} created by {current_user.id}")
            return match.to_dict()

        return _run(None, action, success_status=201)

    @app.route("/api/matches/<match_id>", methods=["GET"])
    @login_required
    def get_live_match(match_id):
        return _run(match_id, lambda service: service.get_match(match_id).to_dict())

    @app.route("/api/matches/<match_id>", methods=["PATCH"])
    @login_required
    def update_live_match(match_id):
        def action(service):
            data = _json_body()
            return service.update_details(match_id, venue=data.get("venue")).to_dict()

        return _run(match_id, action)

    @app.route("/api/matches/<match_id>/balls", methods=["POST"])
    @login_required
    def record_ball(match_id):
        def action(service):
            match, event = service.process_ball_with_event(match_id, request.get_json(silent=True))
            return {"match": match.to_dict(), "event": event.to_dict()}

        return _run(match_id, action)

    @app.route("/api/matches/<match_id>/bowler-rotation", methods=["GET"])
    @login_required
    def bowler_rotation(match_id):
        return _run(match_id, lambda service: service.get_bowler_rotation(match_id).to_dict())

    @app.route("/api/matches/<match_id>/new-over", methods=["POST"])
    @login_required
    def new_over(match_id):
        def action(service):
            data = _json_body()
            return service.start_new_over(match_id, data.get("bowler_id")).to_dict()

        return _run(match_id, action)

    @app.route("/api/matches/<match_id>/batsmen", methods=["PUT"])
    @login_required
    def update_batsmen(match_id):
        def action(service):
            data = _json_body()
            return service.update_batsmen(
                match_id, data.get("on_strike_id"), data.get("off_strike_id")
            ).to_dict()

        return _run(match_id, action)

    @app.route("/api/matches/<match_id>/second-innings", methods=["POST"])
    @login_required
    def second_innings(match_id):
        return _run(match_id, lambda service: service.start_second_innings(match_id).to_dict())

    @app.route("/api/matches/<match_id>/abandon", methods=["POST"])
    @login_required
    def abandon_live_match(match_id):
        return _run(match_id, lambda service: service.abandon_match(match_id).to_dict())

    @app.route("/api/matches/<match_id>/summary", methods=["GET"])
    @login_required
    def match_summary_text(match_id):
        return _run(
            match_id,
            lambda service: Response(service.get_summary(match_id), mimetype="text/plain"),
            raw=True,
        )
