from datetime import date, datetime
import logging
import os
import secrets
from functools import wraps
from flask import Flask, request, g, jsonify, abort
from flask_debugtoolbar import DebugToolbarExtension
from flask_httpauth import HTTPTokenAuth
from werkzeug.exceptions import HTTPException
from schedule_pro.scheduling import projector, slot_grid, store_client
from schedule_pro.scheduling.appointment import WEEKDAY_NAMES
from schedule_pro.scheduling.calendar_session import CalendarSession
from schedule_pro.scheduling.error_utils import FetchError, ValidationError
from schedule_pro.scheduling.status import classify
from schedule_pro.scheduling.time_window import (DAY, MONTH, VIEW_MODES, WEEK, format_query_bound,
                                                 format_window_label, shift_reference)
from schedule_pro.scheduling.validator import suggest_guests
logger = logging.getLogger(__name__)

def create_app(config=None):
    app = Flask(__name__)
    app.secret_key = secrets.token_hex(32) #256 bit
    app.config['SECRET_KEY'] = app.secret_key
    app.config['STORE_API_BASE'] = os.environ.get('SCHEDULE_API_BASE', store_client.DEFAULT_API_BASE)
    app.config['DAY_SLOT_HEIGHT'] = int(os.environ.get('DAY_SLOT_HEIGHT', projector.DAY_SLOT_HEIGHT))
    app.config['WEEK_SLOT_HEIGHT'] = int(os.environ.get('WEEK_SLOT_HEIGHT', projector.WEEK_SLOT_HEIGHT))
    # Swappable for tests: the clock pins "now", the factory replaces the HTTP store
    app.config['CLOCK'] = datetime.now
    app.config['STORE_FACTORY'] = store_client.AppointmentStore
    if os.environ.get('FLASK_ENV') != 'production':
        app.config["DEBUG_TB_INTERCEPT_REDIRECTS"] = False  # Prevents redirect issues
    if config:
        app.config.update(config)
    return app

app = create_app()
# Set to make Flask debug toolbar work
if not os.environ.get('FLASK_ENV') == 'production':
    app.debug=True
auth = HTTPTokenAuth(scheme='Bearer')


# The bearer token is issued and checked by the appointment API; here it only has to be present so it can be relayed.
@auth.verify_token
def verify_token(token):
    if token:
        return token

@auth.error_handler
def auth_error(status):
    return jsonify({"error": "Authentication required"}), status

# Use decorator to create g.store instance within request context window for routes that talk to the appointment API
def instantiate_store(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.store = app.config['STORE_FACTORY'](app.config['STORE_API_BASE'], token=auth.current_user())
        return f(*args, **kwargs)
    return decorated_function

def now():
    return app.config['CLOCK']()

def view_args():
    """
    Reads the view mode and reference date from the query string. Defaults to the day view of today.
    """
    mode = request.args.get('view', DAY)
    if mode not in VIEW_MODES:
        abort(400, description=f"Unknown view: {mode}")
    raw_date = request.args.get('date')
    if not raw_date:
        return mode, now().date()
    try:
        return mode, date.fromisoformat(raw_date)
    except ValueError:
        abort(400, description=f"Invalid date: {raw_date}")

def read_draft():
    # An empty body is an empty draft and fails validation; anything but a JSON object is rejected outright
    draft = request.get_json(silent=True)
    if draft is None:
        return {}
    if not isinstance(draft, dict):
        abort(400, description="Expected a JSON object")
    return draft

def open_session(user_id):
    mode, reference_date = view_args()
    return CalendarSession(g.store, user_id, mode, reference_date, clock=app.config['CLOCK'])

def serialize_projected(item, current):
    data = item.appointment.to_dict()
    data.update({
        "renderStart": format_query_bound(item.render_start),
        "renderEnd": format_query_bound(item.render_end),
        "top": item.top,
        "height": item.height,
        "status": classify(item.appointment, current).value,
    })
    return data

def serialize_column(column, current):
    return {"date": column.date.isoformat(),
            "past": column.past,
            "pastSlots": slot_grid.past_slots(column.date, current),
            "appointments": [serialize_projected(item, current) for item in column.appointments]}

def serialize_month_cell(cell):
    shown = []
    for appt, status in zip(cell.appointments, cell.statuses):
        data = appt.to_dict()
        data["status"] = status.value
        shown.append(data)
    return {"date": cell.date.isoformat(), "muted": cell.muted, "past": cell.past,
            "appointments": shown, "more": cell.more}

def render_grid(session):
    current = session.now()
    if session.mode == MONTH:
        cells = projector.project_month(session.appointments, session.reference_date, current)
        return {"weekdays": list(WEEKDAY_NAMES), "cells": [serialize_month_cell(c) for c in cells]}
    if session.mode == WEEK:
        columns = projector.project_week(session.appointments, session.reference_date,
                                         app.config['WEEK_SLOT_HEIGHT'], now=current)
        slot_height = app.config['WEEK_SLOT_HEIGHT']
    else:
        columns = [projector.day_column(session.appointments, session.reference_date,
                                        app.config['DAY_SLOT_HEIGHT'], now=current)]
        slot_height = app.config['DAY_SLOT_HEIGHT']
    return {"slots": slot_grid.slot_labels(), "slotHeight": slot_height,
            "columns": [serialize_column(c, current) for c in columns]}

def render_session(session):
    window = session.window
    sidebar = []
    for appt, status in session.sidebar():
        data = appt.to_dict()
        data["status"] = status.value
        sidebar.append(data)
    return {"view": session.mode,
            "date": session.reference_date.isoformat(),
            "label": format_window_label(session.reference_date, session.mode),
            "window": {"start": format_query_bound(window.start), "end": format_query_bound(window.end)},
            "grid": render_grid(session),
            "sidebar": sidebar}

# Calendar view for a user: window, header label, grid and the sidebar listing
@app.route("/calendar/<user_id>", methods=['GET'])
@auth.login_required
@instantiate_store
def get_calendar(user_id):
    session = open_session(user_id)
    session.refresh()
    return jsonify(render_session(session))

# Previous/next navigation. Only moves the reference date, no store call needed.
@app.route("/calendar/<user_id>/navigate", methods=['GET'])
@auth.login_required
def navigate(user_id):
    mode, reference_date = view_args()
    direction = request.args.get('direction', 'next')
    if direction not in ('prev', 'next'):
        abort(400, description=f"Unknown direction: {direction}")
    steps = -1 if direction == 'prev' else 1
    new_date = shift_reference(reference_date, mode, steps)
    return jsonify({"view": mode, "date": new_date.isoformat(), "label": format_window_label(new_date, mode)})

# Default start/end offered when the user opens the editor from the "New appointment" button
@app.route("/calendar/<user_id>/new", methods=['GET'])
@auth.login_required
def new_appointment(user_id):
    mode, reference_date = view_args()
    start, end = slot_grid.new_appointment_window(reference_date, now())
    from_view = MONTH if mode == MONTH else DAY
    return jsonify({"start": format_query_bound(start), "end": format_query_bound(end), "fromView": from_view})

# Window offered when the user double-clicks a half-hour slot of the day/week grid. Past slots can't be booked.
@app.route("/calendar/<user_id>/slot", methods=['GET'])
@auth.login_required
def slot_appointment(user_id):
    _, reference_date = view_args()
    raw_slot = request.args.get('slot', '')
    if not raw_slot.isdigit() or int(raw_slot) >= slot_grid.SLOTS_PER_DAY:
        abort(400, description=f"Invalid slot: {raw_slot}")
    slot = slot_grid.day_slots()[int(raw_slot)]
    window = slot_grid.slot_appointment_window(reference_date, slot, now())
    if window is None:
        abort(422, description="Slot is in the past")
    start, end = window
    return jsonify({"start": format_query_bound(start), "end": format_query_bound(end), "fromView": DAY})

@app.route("/appointments/<user_id>", methods=['POST'])
@auth.login_required
@instantiate_store
def create_appointment(user_id):
    draft = read_draft()
    session = open_session(user_id)
    created = session.create(draft, from_view=draft.get('fromView'))
    body = render_session(session)
    body["appointment"] = created.to_dict()
    return jsonify(body), 201

@app.route("/appointments/<user_id>/<appointment_id>", methods=['PUT'])
@auth.login_required
@instantiate_store
def update_appointment(user_id, appointment_id):
    draft = read_draft()
    # The id in the path wins over anything in the body
    draft["id"] = appointment_id
    session = open_session(user_id)
    updated = session.update(draft, from_view=draft.get('fromView'))
    body = render_session(session)
    body["appointment"] = updated.to_dict()
    return jsonify(body)

@app.route("/appointments/<user_id>/<appointment_id>", methods=['DELETE'])
@auth.login_required
@instantiate_store
def delete_appointment(user_id, appointment_id):
    session = open_session(user_id)
    session.delete(appointment_id)
    return '', 204

# Typeahead for the guest picker. Pass the already chosen ids as repeated "selected" params.
@app.route("/users/suggest", methods=['GET'])
@auth.login_required
@instantiate_store
def suggest_users():
    session = CalendarSession(g.store, None, clock=app.config['CLOCK'])
    users = session.load_users()
    selected = request.args.getlist('selected')
    suggestions = suggest_guests(users, request.args.get('q', ''), selected)
    return jsonify([{"id": user.id, "userName": user.display_name} for user in suggestions])

# User-correctable, the store was never called
@app.errorhandler(ValidationError)
def handle_validation_error(error):
    return jsonify({"error": error.message}), 422

# The appointment API failed a create/update/delete; nothing changed locally
@app.errorhandler(FetchError)
def handle_fetch_error(error):
    logger.error(f"Store call failed: {error.message} (status {error.status})")
    return jsonify({"error": error.message}), 502

@app.errorhandler(HTTPException)
def handle_http_error(error):
    return jsonify({"error": error.description}), error.code

if __name__ == '__main__':
    # production
    if os.environ.get('FLASK_ENV') == 'production':
       app.run(debug=False)
    else:
       toolbar = DebugToolbarExtension(app)
       app.run(debug=True, port=5003)
