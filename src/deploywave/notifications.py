# notifications.py
from __future__ import annotations

from .engine import (
    PIPELINE_EXECUTION_FAILED,
    NotificationRule,
    NotificationTopic,
    PipelineBuilder,
)


def failures_topic_name(project_name: str) -> str:
    return f"{project_name}-pipelineFailures"


def failure_rule_name(pipeline_name: str) -> str:
    # pipeline names are unique per account/region, so this is too
    return f"{pipeline_name}-pipelineFailure"


def create_failure_notifications(builder: PipelineBuilder, project_name: str) -> NotificationTopic:
    """
    Create the pipeline's failure topic and subscribe it to execution failures.

    There is at most one failure subscription per pipeline: calling this
    again on the same builder returns the topic registered the first time.
    """
    rule_name = failure_rule_name(builder.name)
    for rule in builder.notification_rules:
        if rule.name == rule_name:
            return rule.target

    topic = builder.add_topic(NotificationTopic(
        id="PipelineFailuresTopic",
        topic_name=failures_topic_name(project_name),
    ))
    builder.add_notification_rule(NotificationRule(
        id="NotifyOnPipelineFailure",
        name=rule_name,
        events=[PIPELINE_EXECUTION_FAILED],
        target=topic,
    ))
    return topic
