"""AWS providers backed by boto3.

One provider per resource kind used by a serverless HTTP/event deployment:
log storage, IAM roles and policy attachments, Lambda functions and
permissions, EventBridge rules and targets, and API Gateway HTTP APIs.

Credentials come from the default boto3 chain. ``botocore`` errors are
mapped onto the engine's transient/permanent/not-found failures.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, ClassVar

import boto3
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from ..exceptions import (
    PermanentProviderError,
    ProviderError,
    ResourceNotFoundError,
    TransientProviderError,
)
from .base import DiffPolicy, Provider

logger = logging.getLogger(__name__)

AWS_PROVIDERS: dict[str, type[AWSProvider]] = {}

TRANSIENT_ERROR_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "RequestLimitExceeded",
        "TooManyRequestsException",
        "ProvisionedThroughputExceededException",
        "RequestTimeout",
        "RequestTimeoutException",
        "ServiceUnavailable",
        "ServiceUnavailableException",
        "InternalFailure",
        "InternalError",
        "InternalServerError",
        "OperationAbortedException",
        "ConcurrentModificationException",
    }
)

NOT_FOUND_ERROR_CODES = frozenset(
    {"ResourceNotFoundException", "NoSuchEntity", "NotFoundException"}
)

_CONNECTION_ERRORS = (
    EndpointConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionClosedError,
)


def aws_provider(cls: type[AWSProvider]) -> type[AWSProvider]:
    """Class decorator registering a provider class under its resource type."""
    AWS_PROVIDERS[cls.resource_type] = cls
    return cls


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


def _not_found(e: ClientError) -> bool:
    return _error_code(e) in NOT_FOUND_ERROR_CODES


def classify_client_error(e: ClientError, resource_type: str, operation: str) -> ProviderError:
    """Map a botocore ClientError onto a transient or permanent provider failure."""
    code = _error_code(e)
    status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
    message = f"{resource_type} {operation} failed: {code}: {e.response.get('Error', {}).get('Message', '')}"
    if code in TRANSIENT_ERROR_CODES or status >= 500:
        return TransientProviderError(message, resource_type=resource_type, operation=operation)
    return PermanentProviderError(message, resource_type=resource_type, operation=operation)


def _as_json(value: Any) -> str:
    """Policy documents may be written as mappings or as JSON strings."""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True)


class AWSProvider(Provider):
    """
    Base class for boto3-backed providers.

    Args:
        region: AWS region (default: use boto3 defaults)
        endpoint_url: Optional endpoint URL (LocalStack or other AWS-compatible services)
        client: Optional boto3 client (injected for testing)
    """

    service: ClassVar[str]

    def __init__(
        self,
        region: str | None = None,
        endpoint_url: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self._client = client

    def _client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self.region:
            kwargs["region_name"] = self.region
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        return kwargs

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(self.service, **self._client_kwargs())
        return self._client

    @contextmanager
    def _errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except ClientError as e:
            raise classify_client_error(e, self.resource_type, operation) from e
        except _CONNECTION_ERRORS as e:
            raise TransientProviderError(
                f"{self.resource_type} {operation} failed: {e}",
                resource_type=self.resource_type,
                operation=operation,
            ) from e


# ---------------------------------------------------------------------------
# CloudWatch Logs
# ---------------------------------------------------------------------------


@aws_provider
class LogGroupProvider(AWSProvider):
    """``aws_cloudwatch_log_group``: name, retention_in_days, kms_key_id, tags."""

    resource_type = "aws_cloudwatch_log_group"
    service = "logs"
    outputs = frozenset({"arn"})
    diff_policy = DiffPolicy(
        force_new=frozenset({"name", "kms_key_id", "tags"}),
        updatable=frozenset({"retention_in_days"}),
    )

    def create(self, attrs: dict[str, Any]) -> tuple[dict[str, Any], str]:
        name = attrs["name"]
        kwargs: dict[str, Any] = {"logGroupName": name}
        if attrs.get("kms_key_id"):
            kwargs["kmsKeyId"] = attrs["kms_key_id"]
        if attrs.get("tags"):
            kwargs["tags"] = attrs["tags"]
        with self._errors("create"):
            try:
                self.client.create_log_group(**kwargs)
            except ClientError as e:
                if _error_code(e) != "ResourceAlreadyExistsException":
                    raise
                logger.info("Log group %s already exists, adopting it", name)
        return self.update(name, attrs), name

    def read(self, provider_id: str) -> dict[str, Any]:
        with self._errors("read"):
            response = self.client.describe_log_groups(logGroupNamePrefix=provider_id)
        for group in response.get("logGroups", []):
            if group["logGroupName"] == provider_id:
                return {
                    "arn": group["arn"].removesuffix(":*"),
                    "retention_in_days": group.get("retentionInDays"),
                }
        raise ResourceNotFoundError(self.resource_type, provider_id)

    def update(self, provider_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        retention = attrs.get("retention_in_days")
        with self._errors("update"):
            if retention:
                self.client.put_retention_policy(
                    logGroupName=provider_id, retentionInDays=int(retention)
                )
            else:
                self.client.delete_retention_policy(logGroupName=provider_id)
        return self.read(provider_id)

    def delete(self, provider_id: str) -> None:
        with self._errors("delete"):
            try:
                self.client.delete_log_group(logGroupName=provider_id)
            except ClientError as e:
                if not _not_found(e):
                    raise


# ---------------------------------------------------------------------------
# IAM
# ---------------------------------------------------------------------------


@aws_provider
class IAMRoleProvider(AWSProvider):
    """``aws_iam_role``: name, assume_role_policy, path, description, tags."""

    resource_type = "aws_iam_role"
    service = "iam"
    outputs = frozenset({"arn", "unique_id"})
    diff_policy = DiffPolicy(force_new=frozenset({"name", "path", "tags"}))

    @staticmethod
    def _outputs(role: dict[str, Any]) -> dict[str, Any]:
        return {"arn": role["Arn"], "unique_id": role["RoleId"]}

    def create(self, attrs: dict[str, Any]) -> tuple[dict[str, Any], str]:
        name = attrs["name"]
        kwargs: dict[str, Any] = {
            "RoleName": name,
            "AssumeRolePolicyDocument": _as_json(attrs["assume_role_policy"]),
            "Path": attrs.get("path", "/"),
        }
        if attrs.get("description"):
            kwargs["Description"] = attrs["description"]
        if attrs.get("tags"):
            kwargs["Tags"] = [{"Key": k, "Value": str(v)} for k, v in attrs["tags"].items()]
        with self._errors("create"):
            try:
                response = self.client.create_role(**kwargs)
            except ClientError as e:
                if _error_code(e) != "EntityAlreadyExists":
                    raise
                logger.info("IAM role %s already exists, adopting it", name)
                return self.update(name, attrs), name
        return self._outputs(response["Role"]), name

    def read(self, provider_id: str) -> dict[str, Any]:
        with self._errors("read"):
            try:
                response = self.client.get_role(RoleName=provider_id)
            except ClientError as e:
                if _not_found(e):
                    raise ResourceNotFoundError(self.resource_type, provider_id) from e
                raise
        return self._outputs(response["Role"])

    def update(self, provider_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        with self._errors("update"):
            self.client.update_assume_role_policy(
                RoleName=provider_id,
                PolicyDocument=_as_json(attrs["assume_role_policy"]),
            )
            self.client.update_role(
                RoleName=provider_id, Description=attrs.get("description", "")
            )
        return self.read(provider_id)

    def delete(self, provider_id: str) -> None:
        with self._errors("delete"):
            try:
                self.client.delete_role(RoleName=provider_id)
            except ClientError as e:
                if not _not_found(e):
                    raise


@aws_provider
class RolePolicyAttachmentProvider(AWSProvider):
    """``aws_iam_role_policy_attachment``: role, policy_arn. Never updated in place."""

    resource_type = "aws_iam_role_policy_attachment"
    service = "iam"
    diff_policy = DiffPolicy(updatable=frozenset())

    def create(self, attrs: dict[str, Any]) -> tuple[dict[str, Any], str]:
        role, policy_arn = attrs["role"], attrs["policy_arn"]
        with self._errors("create"):
            self.client.attach_role_policy(RoleName=role, PolicyArn=policy_arn)
        return {}, f"{role}:{policy_arn}"

    def read(self, provider_id: str) -> dict[str, Any]:
        role, policy_arn = provider_id.split(":", 1)
        with self._errors("read"):
            try:
                paginator = self.client.get_paginator("list_attached_role_policies")
                for page in paginator.paginate(RoleName=role):
                    for policy in page.get("AttachedPolicies", []):
                        if policy["PolicyArn"] == policy_arn:
                            return {"role": role, "policy_arn": policy_arn}
            except ClientError as e:
                if _not_found(e):
                    raise ResourceNotFoundError(self.resource_type, provider_id) from e
                raise
        raise ResourceNotFoundError(self.resource_type, provider_id)

    def update(self, provider_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        return self.read(provider_id)

    def delete(self, provider_id: str) -> None:
        role, policy_arn = provider_id.split(":", 1)
        with self._errors("delete"):
            try:
                self.client.detach_role_policy(RoleName=role, PolicyArn=policy_arn)
            except ClientError as e:
                if not _not_found(e):
                    raise


# ---------------------------------------------------------------------------
# Lambda
# ---------------------------------------------------------------------------


@aws_provider
class LambdaFunctionProvider(AWSProvider):
    """
    ``aws_lambda_function``.

    Code comes from ``filename`` (a local zip) or ``s3_bucket``/``s3_key``.
    Code is re-uploaded on every update; set ``source_code_hash`` so that a
    changed package shows up as an attribute delta.
    """

    resource_type = "aws_lambda_function"
    service = "lambda"
    outputs = frozenset({"arn", "invoke_arn", "version", "last_modified"})
    diff_policy = DiffPolicy(force_new=frozenset({"function_name", "package_type"}))

    CONFIG_FIELDS: ClassVar[dict[str, str]] = {
        "role": "Role",
        "handler": "Handler",
        "runtime": "Runtime",
        "timeout": "Timeout",
        "memory_size": "MemorySize",
        "description": "Description",
    }

    def _config(self, attrs: dict[str, Any]) -> dict[str, Any]:
        config = {aws: attrs[key] for key, aws in self.CONFIG_FIELDS.items() if key in attrs}
        if "environment" in attrs:
            config["Environment"] = {
                "Variables": {k: str(v) for k, v in (attrs["environment"] or {}).items()}
            }
        return config

    def _code(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if attrs.get("filename"):
            try:
                return {"ZipFile": Path(attrs["filename"]).read_bytes()}
            except OSError as e:
                raise PermanentProviderError(
                    f"cannot read Lambda package {attrs['filename']}: {e}",
                    resource_type=self.resource_type,
                    operation="create",
                ) from e
        if attrs.get("s3_bucket") and attrs.get("s3_key"):
            return {"S3Bucket": attrs["s3_bucket"], "S3Key": attrs["s3_key"]}
        raise PermanentProviderError(
            "aws_lambda_function requires 'filename' or 's3_bucket' and 's3_key'",
            resource_type=self.resource_type,
            operation="create",
        )

    @staticmethod
    def _outputs(config: dict[str, Any]) -> dict[str, Any]:
        arn = config["FunctionArn"]
        partition, region = arn.split(":")[1], arn.split(":")[3]
        return {
            "arn": arn,
            "invoke_arn": (
                f"arn:{partition}:apigateway:{region}:lambda:path/2015-03-31/functions/"
                f"{arn}/invocations"
            ),
            "version": config.get("Version"),
            "last_modified": config.get("LastModified"),
        }

    @contextmanager
    def _errors(self, operation: str) -> Iterator[None]:
        # A freshly created execution role is not assumable until IAM propagates.
        try:
            with super()._errors(operation):
                yield
        except PermanentProviderError as e:
            cause = e.__cause__
            if (
                isinstance(cause, ClientError)
                and _error_code(cause) == "InvalidParameterValueException"
                and "cannot be assumed" in str(cause.response.get("Error", {}).get("Message", ""))
            ):
                raise TransientProviderError(
                    str(e), resource_type=self.resource_type, operation=operation
                ) from cause
            raise

    def create(self, attrs: dict[str, Any]) -> tuple[dict[str, Any], str]:
        name = attrs["function_name"]
        code = self._code(attrs)
        with self._errors("create"):
            try:
                self.client.create_function(FunctionName=name, Code=code, **self._config(attrs))
            except ClientError as e:
                if _error_code(e) != "ResourceConflictException":
                    raise
                logger.info("Lambda function %s already exists, adopting it", name)
                return self.update(name, attrs), name
            self.client.get_waiter("function_active_v2").wait(FunctionName=name)
        return self.read(name), name

    def read(self, provider_id: str) -> dict[str, Any]:
        with self._errors("read"):
            try:
                response = self.client.get_function(FunctionName=provider_id)
            except ClientError as e:
                if _not_found(e):
                    raise ResourceNotFoundError(self.resource_type, provider_id) from e
                raise
        return self._outputs(response["Configuration"])

    def update(self, provider_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        code = self._code(attrs)
        waiter = self.client.get_waiter("function_updated_v2")
        with self._errors("update"):
            self.client.update_function_configuration(
                FunctionName=provider_id, **self._config(attrs)
            )
            waiter.wait(FunctionName=provider_id)
            self.client.update_function_code(FunctionName=provider_id, **code)
            waiter.wait(FunctionName=provider_id)
        return self.read(provider_id)

    def delete(self, provider_id: str) -> None:
        with self._errors("delete"):
            try:
                self.client.delete_function(FunctionName=provider_id)
            except ClientError as e:
                if not _not_found(e):
                    raise


@aws_provider
class LambdaPermissionProvider(AWSProvider):
    """``aws_lambda_permission``: function_name, statement_id, action, principal, source_arn."""

    resource_type = "aws_lambda_permission"
    service = "lambda"
    diff_policy = DiffPolicy(updatable=frozenset())

    def create(self, attrs: dict[str, Any]) -> tuple[dict[str, Any], str]:
        function_name, statement_id = attrs["function_name"], attrs["statement_id"]
        kwargs: dict[str, Any] = {
            "FunctionName": function_name,
            "StatementId": statement_id,
            "Action": attrs.get("action", "lambda:InvokeFunction"),
            "Principal": attrs["principal"],
        }
        if attrs.get("source_arn"):
            kwargs["SourceArn"] = attrs["source_arn"]
        with self._errors("create"):
            try:
                self.client.add_permission(**kwargs)
            except ClientError as e:
                if _error_code(e) != "ResourceConflictException":
                    raise
                logger.info("Permission %s on %s already exists", statement_id, function_name)
        return {}, f"{function_name}/{statement_id}"

    def read(self, provider_id: str) -> dict[str, Any]:
        function_name, statement_id = provider_id.rsplit("/", 1)
        with self._errors("read"):
            try:
                response = self.client.get_policy(FunctionName=function_name)
            except ClientError as e:
                if _not_found(e):
                    raise ResourceNotFoundError(self.resource_type, provider_id) from e
                raise
        for statement in json.loads(response["Policy"]).get("Statement", []):
            if statement.get("Sid") == statement_id:
                return {"statement_id": statement_id}
        raise ResourceNotFoundError(self.resource_type, provider_id)

    def update(self, provider_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        return self.read(provider_id)

    def delete(self, provider_id: str) -> None:
        function_name, statement_id = provider_id.rsplit("/", 1)
        with self._errors("delete"):
            try:
                self.client.remove_permission(FunctionName=function_name, StatementId=statement_id)
            except ClientError as e:
                if not _not_found(e):
                    raise


# ---------------------------------------------------------------------------
# EventBridge
# ---------------------------------------------------------------------------


@aws_provider
class EventRuleProvider(AWSProvider):
    """
    ``aws_cloudwatch_event_rule``: name, event_bus_name, schedule_expression,
    event_pattern, description, state.
    """

    resource_type = "aws_cloudwatch_event_rule"
    service = "events"
    outputs = frozenset({"arn"})
    diff_policy = DiffPolicy(force_new=frozenset({"name", "event_bus_name"}))

    def _put(self, attrs: dict[str, Any]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "Name": attrs["name"],
            "EventBusName": attrs.get("event_bus_name", "default"),
            "State": attrs.get("state", "ENABLED"),
        }
        if attrs.get("schedule_expression"):
            kwargs["ScheduleExpression"] = attrs["schedule_expression"]
        if attrs.get("event_pattern"):
            kwargs["EventPattern"] = _as_json(attrs["event_pattern"])
        if attrs.get("description"):
            kwargs["Description"] = attrs["description"]
        response = self.client.put_rule(**kwargs)
        return {"arn": response["RuleArn"]}

    def create(self, attrs: dict[str, Any]) -> tuple[dict[str, Any], str]:
        with self._errors("create"):
            outputs = self._put(attrs)
        return outputs, f"{attrs.get('event_bus_name', 'default')}/{attrs['name']}"

    def read(self, provider_id: str) -> dict[str, Any]:
        bus, name = provider_id.rsplit("/", 1)
        with self._errors("read"):
            try:
                response = self.client.describe_rule(Name=name, EventBusName=bus)
            except ClientError as e:
                if _not_found(e):
                    raise ResourceNotFoundError(self.resource_type, provider_id) from e
                raise
        return {"arn": response["Arn"]}

    def update(self, provider_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        with self._errors("update"):
            return self._put(attrs)

    def delete(self, provider_id: str) -> None:
        bus, name = provider_id.rsplit("/", 1)
        with self._errors("delete"):
            try:
                self.client.delete_rule(Name=name, EventBusName=bus)
            except ClientError as e:
                if not _not_found(e):
                    raise


@aws_provider
class EventTargetProvider(AWSProvider):
    """``aws_cloudwatch_event_target``: rule, event_bus_name, target_id, arn, input, role_arn."""

    resource_type = "aws_cloudwatch_event_target"
    service = "events"
    diff_policy = DiffPolicy(force_new=frozenset({"rule", "event_bus_name", "target_id"}))

    def _put(self, attrs: dict[str, Any]) -> dict[str, Any]:
        target: dict[str, Any] = {"Id": attrs["target_id"], "Arn": attrs["arn"]}
        if attrs.get("input") is not None:
            target["Input"] = _as_json(attrs["input"])
        if attrs.get("role_arn"):
            target["RoleArn"] = attrs["role_arn"]
        response = self.client.put_targets(
            Rule=attrs["rule"],
            EventBusName=attrs.get("event_bus_name", "default"),
            Targets=[target],
        )
        if response.get("FailedEntryCount"):
            failed = response.get("FailedEntries", [{}])[0]
            raise PermanentProviderError(
                f"put_targets rejected {attrs['target_id']}: "
                f"{failed.get('ErrorCode')}: {failed.get('ErrorMessage')}",
                resource_type=self.resource_type,
                operation="put_targets",
            )
        return {"arn": attrs["arn"]}

    def create(self, attrs: dict[str, Any]) -> tuple[dict[str, Any], str]:
        with self._errors("create"):
            outputs = self._put(attrs)
        bus = attrs.get("event_bus_name", "default")
        return outputs, f"{bus}/{attrs['rule']}/{attrs['target_id']}"

    def read(self, provider_id: str) -> dict[str, Any]:
        bus, rule, target_id = provider_id.rsplit("/", 2)
        kwargs: dict[str, Any] = {"Rule": rule, "EventBusName": bus}
        with self._errors("read"):
            while True:
                try:
                    response = self.client.list_targets_by_rule(**kwargs)
                except ClientError as e:
                    if _not_found(e):
                        raise ResourceNotFoundError(self.resource_type, provider_id) from e
                    raise
                for target in response.get("Targets", []):
                    if target["Id"] == target_id:
                        return {"arn": target["Arn"]}
                if not response.get("NextToken"):
                    break
                kwargs["NextToken"] = response["NextToken"]
        raise ResourceNotFoundError(self.resource_type, provider_id)

    def update(self, provider_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        with self._errors("update"):
            return self._put(attrs)

    def delete(self, provider_id: str) -> None:
        bus, rule, target_id = provider_id.rsplit("/", 2)
        with self._errors("delete"):
            try:
                self.client.remove_targets(Rule=rule, EventBusName=bus, Ids=[target_id])
            except ClientError as e:
                if not _not_found(e):
                    raise


# ---------------------------------------------------------------------------
# API Gateway
# ---------------------------------------------------------------------------


@aws_provider
class HttpApiProvider(AWSProvider):
    """
    ``aws_apigatewayv2_api``: name, protocol_type, description, and the
    quick-create ``target``/``route_key`` pair for a single Lambda integration.
    """

    resource_type = "aws_apigatewayv2_api"
    service = "apigatewayv2"
    outputs = frozenset({"api_id", "api_endpoint", "arn", "execution_arn"})
    diff_policy = DiffPolicy(force_new=frozenset({"protocol_type", "target", "route_key"}))

    _sts_client: Any = None
    _account: str | None = None

    def _account_id(self) -> str:
        if self._account is None:
            if self._sts_client is None:
                self._sts_client = boto3.client("sts", **self._client_kwargs())
            self._account = str(self._sts_client.get_caller_identity()["Account"])
        return self._account

    def _outputs(self, api: dict[str, Any]) -> dict[str, Any]:
        api_id = api["ApiId"]
        region = self.client.meta.region_name
        return {
            "api_id": api_id,
            "api_endpoint": api.get("ApiEndpoint"),
            "arn": f"arn:aws:apigateway:{region}::/apis/{api_id}",
            "execution_arn": f"arn:aws:execute-api:{region}:{self._account_id()}:{api_id}",
        }

    def _find(self, name: str, protocol_type: str) -> dict[str, Any] | None:
        kwargs: dict[str, Any] = {}
        while True:
            response = self.client.get_apis(**kwargs)
            for api in response.get("Items", []):
                if api.get("Name") == name and api.get("ProtocolType") == protocol_type:
                    return api
            if not response.get("NextToken"):
                return None
            kwargs["NextToken"] = response["NextToken"]

    def create(self, attrs: dict[str, Any]) -> tuple[dict[str, Any], str]:
        name = attrs["name"]
        protocol_type = attrs.get("protocol_type", "HTTP")
        kwargs: dict[str, Any] = {"Name": name, "ProtocolType": protocol_type}
        for key, aws in (("description", "Description"), ("target", "Target"), ("route_key", "RouteKey")):
            if attrs.get(key):
                kwargs[aws] = attrs[key]
        with self._errors("create"):
            api = self._find(name, protocol_type)
            if api is not None:
                logger.info("HTTP API %s already exists as %s, adopting it", name, api["ApiId"])
            else:
                api = self.client.create_api(**kwargs)
            outputs = self._outputs(api)
        return outputs, api["ApiId"]

    def read(self, provider_id: str) -> dict[str, Any]:
        with self._errors("read"):
            try:
                api = self.client.get_api(ApiId=provider_id)
            except ClientError as e:
                if _not_found(e):
                    raise ResourceNotFoundError(self.resource_type, provider_id) from e
                raise
            return self._outputs(api)

    def update(self, provider_id: str, attrs: dict[str, Any]) -> dict[str, Any]:
        with self._errors("update"):
            api = self.client.update_api(
                ApiId=provider_id,
                Name=attrs["name"],
                Description=attrs.get("description", ""),
            )
            return self._outputs(api)

    def delete(self, provider_id: str) -> None:
        with self._errors("delete"):
            try:
                self.client.delete_api(ApiId=provider_id)
            except ClientError as e:
                if not _not_found(e):
                    raise
