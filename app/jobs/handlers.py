"""
Job handlers for the five pipeline queues.

Municipal portals, traffic-plan rendering, calendar booking and closeout
packaging are external systems this service does not integrate with yet.
Each handler acknowledges its job and reports success so the envelope
and retry bookkeeping are exercised end to end.
"""

import logging

from app.jobs.runner import register_handler

logger = logging.getLogger(__name__)


@register_handler("process-ticket")
def process_ticket(payload: dict) -> dict:
    """Post-intake processing for a newly imported ticket."""
    ticket_id = payload.get("ticket_id")
    logger.info("Processing ticket %s", ticket_id, extra={"ticket_id": ticket_id})
    return {"processed": True, "ticket_id": ticket_id}


@register_handler("prefill-permit")
def prefill_permit(payload: dict) -> dict:
    """Draft a permit application for the requested municipality."""
    ticket_id = payload.get("ticket_id")
    logger.info("Prefilling %s permit for ticket %s",
                payload.get("municipality"), ticket_id, extra={"ticket_id": ticket_id})
    return {"prefilled": True, "ticket_id": ticket_id, "municipality": payload.get("municipality")}


@register_handler("generate-traffic-plan")
def generate_traffic_plan(payload: dict) -> dict:
    ticket_id = payload.get("ticket_id")
    logger.info("Generating traffic plan %s for ticket %s",
                payload.get("template_id"), ticket_id, extra={"ticket_id": ticket_id})
    return {"generated": True, "ticket_id": ticket_id, "template_id": payload.get("template_id")}


@register_handler("schedule-inspection")
def schedule_inspection(payload: dict) -> dict:
    ticket_id = payload.get("ticket_id")
    logger.info("Scheduling %s inspection for ticket %s",
                payload.get("inspection_type"), ticket_id, extra={"ticket_id": ticket_id})
    return {"scheduled": True, "ticket_id": ticket_id, "preferred_date": payload.get("preferred_date")}


@register_handler("process-closeout")
def process_closeout(payload: dict) -> dict:
    ticket_id = payload.get("ticket_id")
    logger.info("Processing closeout for ticket %s", ticket_id, extra={"ticket_id": ticket_id})
    return {"closed": True, "ticket_id": ticket_id}
