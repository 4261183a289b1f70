"""Drive the site's CloudFormation stack to a settled, converged state."""

import logging
import time

from botocore.exceptions import BotoCoreError, ClientError

from .errors import PollTimeout
from .models import StackOutcome, StackOutcomeKind, StackSnapshot, StackState
from .polling import poll_until

logger = logging.getLogger(__name__)

NO_UPDATES_MESSAGE = "No updates are to be performed"

STACK_POLL_INTERVAL = 10
STACK_MAX_ATTEMPTS = 360

CAPABILITIES = ["CAPABILITY_IAM"]

# States a stack cannot be updated out of; the only way forward is delete and recreate
UNRECOVERABLE = (
    StackState.ROLLBACK_COMPLETE,
    StackState.ROLLBACK_FAILED,
    StackState.CREATE_FAILED,
    StackState.DELETE_FAILED,
    StackState.REVIEW_IN_PROGRESS,
)


def _error_message(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Message", str(e))


def _settling(state: StackState) -> bool:
    # REVIEW_IN_PROGRESS waits on a change set and never settles by itself
    return state.in_progress and state is not StackState.REVIEW_IN_PROGRESS


def describe_stack(cfn, stack: str) -> StackSnapshot | None:
    """Current snapshot of ``stack`` (name or ID), or None when it does not exist."""
    try:
        resp = cfn.describe_stacks(StackName=stack)
    except ClientError as e:
        if "does not exist" in _error_message(e):
            return None
        raise

    data = resp["Stacks"][0]
    state = StackState.from_aws(data["StackStatus"])
    if state is StackState.DELETE_COMPLETE:
        return None
    return StackSnapshot(
        name=data["StackName"],
        stack_id=data["StackId"],
        state=state,
        outputs={o["OutputKey"]: o["OutputValue"] for o in data.get("Outputs", [])},
        reason=data.get("StackStatusReason", ""),
    )


def wait_for_stack(cfn, stack: str, *, sleep=time.sleep, interval=STACK_POLL_INTERVAL, max_attempts=STACK_MAX_ATTEMPTS):
    """Poll until ``stack`` leaves its in-progress state or disappears.

    Pass the stack ID rather than the name so a stack deleted on failure can
    still be distinguished from one never created. Raises PollTimeout.
    """
    return poll_until(
        lambda: describe_stack(cfn, stack),
        lambda snapshot: snapshot is None or not _settling(snapshot.state),
        interval=interval,
        max_attempts=max_attempts,
        sleep=sleep,
        what=f"stack {stack}",
    )


def stack_failure_reason(cfn, stack: str) -> str:
    """Reason of the first resource that failed in the stack's latest operation."""
    reason = ""
    kwargs = {"StackName": stack}
    try:
        while True:
            resp = cfn.describe_stack_events(**kwargs)
            # Newest first: stop at the event that started the latest operation
            for event in resp["StackEvents"]:
                if (
                    event.get("ResourceType") == "AWS::CloudFormation::Stack"
                    and event.get("ResourceStatus") in ("CREATE_IN_PROGRESS", "UPDATE_IN_PROGRESS", "DELETE_IN_PROGRESS")
                    and event.get("ResourceStatusReason") == "User Initiated"
                ):
                    return reason
                if event.get("ResourceStatus", "").endswith("_FAILED") and event.get("ResourceStatusReason"):
                    reason = f"{event['LogicalResourceId']}: {event['ResourceStatusReason']}"
            if not resp.get("NextToken"):
                break
            kwargs["NextToken"] = resp["NextToken"]
    except (ClientError, BotoCoreError) as e:
        logger.debug("Could not read events for stack %s: %s", stack, e)
    return reason


def _failed(cfn, stack_id: str, final: StackSnapshot | None, fallback: str) -> StackOutcome:
    reason = stack_failure_reason(cfn, stack_id) or (final.reason if final else "") or fallback
    logger.warning("Stack %s failed: %s", stack_id, reason)
    return StackOutcome(StackOutcomeKind.FAILED, stack_id=stack_id, reason=reason)


def _create(cfn, name: str, template_body: str, tags: list, wait) -> StackOutcome:
    logger.info("Creating CloudFormation stack %s...", name)
    try:
        resp = cfn.create_stack(
            StackName=name,
            TemplateBody=template_body,
            Tags=tags,
            OnFailure="DELETE",
            Capabilities=CAPABILITIES,
        )
    except ClientError as e:
        return StackOutcome(StackOutcomeKind.FAILED, reason=_error_message(e))

    stack_id = resp["StackId"]
    final = wait(stack_id)
    if final and final.state is StackState.CREATE_COMPLETE:
        logger.info("Stack %s created", name)
        return StackOutcome(StackOutcomeKind.CREATED, stack_id=stack_id, outputs=final.outputs)
    return _failed(cfn, stack_id, final, "Stack creation failed")


def _update(cfn, current: StackSnapshot, template_body: str, tags: list, wait) -> StackOutcome:
    if current.state.failed:
        logger.info("Stack %s is %s from an earlier failed run, updating it", current.name, current.state.value)
    logger.info("Updating CloudFormation stack %s...", current.name)
    try:
        cfn.update_stack(
            StackName=current.stack_id,
            TemplateBody=template_body,
            Tags=tags,
            Capabilities=CAPABILITIES,
        )
    except ClientError as e:
        message = _error_message(e)
        if NO_UPDATES_MESSAGE in message:
            logger.info("Stack %s is already up to date", current.name)
            return StackOutcome(StackOutcomeKind.NO_CHANGES, stack_id=current.stack_id, outputs=current.outputs)
        return StackOutcome(StackOutcomeKind.FAILED, stack_id=current.stack_id, reason=message)

    final = wait(current.stack_id)
    if final and final.state is StackState.UPDATE_COMPLETE:
        logger.info("Stack %s updated", current.name)
        return StackOutcome(StackOutcomeKind.UPDATED, stack_id=current.stack_id, outputs=final.outputs)
    return _failed(cfn, current.stack_id, final, "Stack update failed")


def converge_stack(
    cfn,
    name: str,
    template_body: str,
    tags: list,
    *,
    sleep=time.sleep,
    interval=STACK_POLL_INTERVAL,
    max_attempts=STACK_MAX_ATTEMPTS,
) -> StackOutcome:
    """Create or update ``name`` with ``template_body`` and wait for it to settle.

    An operation already in flight is waited out first. A stack stuck in an
    unrecoverable state is deleted and recreated. "No updates are to be
    performed" is success. Wait exhaustion is reported as a failed outcome.
    """

    def wait(stack):
        return wait_for_stack(cfn, stack, sleep=sleep, interval=interval, max_attempts=max_attempts)

    try:
        current = describe_stack(cfn, name)
        if current and _settling(current.state):
            logger.info("Stack %s is %s, waiting for it to finish...", name, current.state.value)
            current = wait(current.stack_id)

        if current and current.state in UNRECOVERABLE:
            logger.info("Stack %s is %s and cannot be updated, deleting it...", name, current.state.value)
            cfn.delete_stack(StackName=current.stack_id)
            deleted = wait(current.stack_id)
            if deleted is not None:
                return StackOutcome(
                    StackOutcomeKind.FAILED,
                    stack_id=current.stack_id,
                    reason=f"Stack {name} could not be deleted ({deleted.state.value})",
                )
            current = None

        if current is None:
            return _create(cfn, name, template_body, tags, wait)
        return _update(cfn, current, template_body, tags, wait)
    except PollTimeout as e:
        last = e.last.state.value if e.last else "unknown"
        return StackOutcome(
            StackOutcomeKind.FAILED,
            stack_id=e.last.stack_id if e.last else "",
            reason=f"Timed out waiting for stack {name} (last status: {last})",
        )


def delete_stack(cfn, name: str, *, sleep=time.sleep, interval=STACK_POLL_INTERVAL, max_attempts=STACK_MAX_ATTEMPTS) -> StackOutcome:
    """Delete ``name`` and wait for DELETE_COMPLETE."""
    current = describe_stack(cfn, name)
    if current is None:
        return StackOutcome(StackOutcomeKind.NO_CHANGES, reason=f"Stack {name} does not exist")

    logger.info("Deleting CloudFormation stack %s...", name)
    cfn.delete_stack(StackName=current.stack_id)
    try:
        final = wait_for_stack(cfn, current.stack_id, sleep=sleep, interval=interval, max_attempts=max_attempts)
    except PollTimeout:
        return StackOutcome(StackOutcomeKind.FAILED, stack_id=current.stack_id, reason=f"Timed out deleting stack {name}")

    if final is not None:
        return _failed(cfn, current.stack_id, final, f"Stack {name} ended in {final.state.value}")
    logger.info("Stack %s deleted", name)
    return StackOutcome(StackOutcomeKind.DELETED, stack_id=current.stack_id)
