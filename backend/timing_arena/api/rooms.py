from flask import Blueprint, current_app, jsonify

rooms = Blueprint('rooms', __name__)


@rooms.route('', methods=['GET'])
def list_rooms():
    gateway = current_app.extensions['timing_arena']
    with gateway.lock:
        summaries = gateway.registry.list_rooms()
    return jsonify(summaries)


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    gateway = current_app.extensions['timing_arena']
    with gateway.lock:
        room = gateway.registry.get(room_id.upper())
        if room is None:
            return jsonify({'error': 'Room not found'}), 404
        data = room.summary(gateway.registry.max_room_size)
        data['members'] = room.member_list()
        data['roundNumber'] = room.round_number
    return jsonify(data)
