import json
import logging
import ssl
from typing import Optional

from aiomqtt import Client, MqttError

from parkdesk import config


def barrier_tls_context() -> Optional[ssl.SSLContext]:
    if not config.MQTT_TLS_ENABLED:
        return None
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=config.CA_CERT)
    context.load_cert_chain(certfile=config.CLIENT_CERT, keyfile=config.CLIENT_KEY)
    return context


def exit_event(attempt) -> dict:
    """Barrier command for a vehicle that has been exited upstream."""
    return {
        "command": "open",
        "session_id": attempt.session_id,
        "vehicle_number": attempt.session.vehicle_number,
        "exit_state": attempt.state.value,
        "payment_outstanding": attempt.state.value == "exited_pending_payment",
    }


async def open_exit_barrier(attempt) -> bool:
    if not config.MQTT_HOST:
        logging.info(f"MQTT_HOST not set, exit barrier not signalled for session {attempt.session_id}")
        return False

    payload = json.dumps(exit_event(attempt))
    port = config.MQTT_TLS_PORT if config.MQTT_TLS_ENABLED else config.MQTT_PORT
    try:
        async with Client(
            hostname=config.MQTT_HOST,
            port=port,
            username=config.MQTT_USERNAME,
            password=config.MQTT_PASSWORD,
            tls_context=barrier_tls_context(),
        ) as client:
            await client.publish(config.MQTT_EXIT_TOPIC, payload.encode(), qos=1)
    except (MqttError, OSError) as e:
        logging.error(f"Exit barrier for session {attempt.session_id} not signalled via {config.MQTT_HOST}:{port}: {e}")
        return False

    logging.info(f"Exit barrier signalled on '{config.MQTT_EXIT_TOPIC}' for session {attempt.session_id}")
    return True
