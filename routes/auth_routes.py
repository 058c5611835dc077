"""Authentication route registration."""

from flask import jsonify, request
from flask_login import current_user, login_required, login_user, logout_user


def register_auth_routes(
    app,
    *,
    db,
    register_user,
    verify_user,
    DBUser,
):
    @app.route("/register", methods=["POST"])
    def register():
        """JSON registration: email, password, optional display_name."""
        try:
            data = request.get_json(silent=True) or {}
            email = str(data.get("email", "")).strip().lower()
            password = data.get("password", "")
            display_name = str(data.get("display_name", "")).strip() or None

            if not email or "@" not in email or "." not in email:
                return jsonify({"error": "ValidationError", "message": "Invalid email"}), 400
            if not password or not isinstance(password, str):
                return jsonify({"error": "ValidationError", "message": "Password required"}), 400
            if display_name and len(display_name) > 50:
                return jsonify({
                    "error": "ValidationError",
                    "message": "Display name must be 50 characters or fewer",
                }), 400

            if register_user(email, password, display_name=display_name):
                app.logger.info(f"Registered new user {email}")
                return jsonify({"message": "Registered", "email": email}), 201
            return jsonify({"error": "Conflict", "message": "User already exists"}), 409
        except Exception as e:
            app.logger.error(f"Registration error: {e}", exc_info=True)
            return jsonify({"error": "ServerError", "message": "System error"}), 500

    @app.route("/login", methods=["POST"])
    def login():
        try:
            data = request.get_json(silent=True) or request.form
            email = str(data.get("email", "")).strip().lower()
            password = data.get("password", "")

            if not email or not password:
                return jsonify({"error": "ValidationError", "message": "Email and password required"}), 400

            if verify_user(email, password):
                user = db.session.get(DBUser, email)
                login_user(user)
                app.logger.info(f"Successful login for {email}")
                return jsonify({
                    "message": "Logged in",
                    "email": user.id,
                    "display_name": user.display_name,
                    "is_admin": bool(user.is_admin),
                })

            app.logger.warning(f"Failed login attempt for {email}")
            return jsonify({"error": "Unauthorized", "message": "Invalid email or password"}), 401
        except Exception as e:
            app.logger.error(f"Login error: {e}", exc_info=True)
            return jsonify({"error": "ServerError", "message": "System error"}), 500

    @app.route("/logout", methods=["POST"])
    @login_required
    def logout():
        app.logger.info(f"Logout for {current_user.id}")
        logout_user()
        return jsonify({"message": "Logged out"})
