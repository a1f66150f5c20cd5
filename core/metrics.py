from prometheus_client import Counter

DEPLOYMENT_COUNTER = Counter(
    'deploy_webhook_requests_total',
    'Total number of deployment webhooks passed to the orchestrator'
)

DEPLOYMENT_FAILURE_COUNTER = Counter(
    'deploy_webhook_failures_total',
    'Total number of failed deployments by stage',
    ['stage']
)

CONTAINERS_REPLACED_COUNTER = Counter(
    'deploy_webhook_containers_replaced_total',
    'Total number of containers started by a successful deployment'
)
