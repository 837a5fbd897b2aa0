"""Tests for the S3 storage bucket, with botocore's Stubber in place of AWS."""

import boto3
import pytest
from botocore.exceptions import EndpointConnectionError
from botocore.stub import Stubber
from conftest import make_settings

from doclib.errors import BackendUnavailable, GatewayError
from doclib.gateway.s3 import S3Bucket

BUCKET = "documents"
KEY = "1700000000000_notes.pdf"


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def stubber(s3_client):
    with Stubber(s3_client) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def bucket(s3_client) -> S3Bucket:
    return S3Bucket(s3_client, BUCKET, public_url_base="https://cdn.example.com/documents")


class UnreachableClient:
    def head_object(self, **kwargs):
        raise EndpointConnectionError(endpoint_url="https://s3.amazonaws.com")

    def delete_objects(self, **kwargs):
        raise EndpointConnectionError(endpoint_url="https://s3.amazonaws.com")


async def test_upload_new_object(bucket: S3Bucket, stubber: Stubber):
    stubber.add_client_error(
        "head_object", service_error_code="404", http_status_code=404, expected_params={"Bucket": BUCKET, "Key": KEY}
    )
    stubber.add_response(
        "put_object",
        {},
        {"Bucket": BUCKET, "Key": KEY, "Body": b"%PDF", "ContentType": "application/pdf"},
    )

    response = await bucket.upload(KEY, b"%PDF", content_type="application/pdf")

    assert response.error is None
    assert response.data == {"path": KEY}


async def test_upload_existing_object_without_upsert_fails(bucket: S3Bucket, stubber: Stubber):
    stubber.add_response("head_object", {"ContentLength": 4}, {"Bucket": BUCKET, "Key": KEY})

    response = await bucket.upload(KEY, b"%PDF", content_type="application/pdf")

    assert isinstance(response.error, GatewayError)


async def test_upload_with_upsert_skips_existence_check(bucket: S3Bucket, stubber: Stubber):
    stubber.add_response(
        "put_object",
        {},
        {"Bucket": BUCKET, "Key": KEY, "Body": b"%PDF", "ContentType": "application/pdf"},
    )

    response = await bucket.upload(KEY, b"%PDF", content_type="application/pdf", upsert=True)

    assert response.error is None


async def test_upload_access_denied(bucket: S3Bucket, stubber: Stubber):
    stubber.add_client_error("head_object", service_error_code="403", http_status_code=403)

    response = await bucket.upload(KEY, b"%PDF", content_type="application/pdf")

    assert isinstance(response.error, GatewayError)
    assert not isinstance(response.error, BackendUnavailable)


async def test_upload_unreachable_endpoint():
    bucket = S3Bucket(UnreachableClient(), BUCKET)

    response = await bucket.upload(KEY, b"%PDF", content_type="application/pdf")

    assert isinstance(response.error, BackendUnavailable)


async def test_remove_objects(bucket: S3Bucket, stubber: Stubber):
    stubber.add_response(
        "delete_objects",
        {"Deleted": [{"Key": KEY}]},
        {"Bucket": BUCKET, "Delete": {"Objects": [{"Key": KEY}], "Quiet": False}},
    )

    response = await bucket.remove([KEY])

    assert response.error is None
    assert response.data == [KEY]


async def test_remove_reports_per_key_errors(bucket: S3Bucket, stubber: Stubber):
    stubber.add_response(
        "delete_objects",
        {"Errors": [{"Key": KEY, "Code": "AccessDenied", "Message": "Access Denied"}]},
    )

    response = await bucket.remove([KEY])

    assert isinstance(response.error, GatewayError)
    assert "Access Denied" in str(response.error)


async def test_remove_unreachable_endpoint():
    response = await S3Bucket(UnreachableClient(), BUCKET).remove([KEY])
    assert isinstance(response.error, BackendUnavailable)


def test_public_url(bucket: S3Bucket):
    assert bucket.get_public_url(KEY) == f"https://cdn.example.com/documents/{KEY}"


def test_public_url_for_custom_endpoint():
    bucket = S3Bucket.from_settings(make_settings(aws_s3_endpoint_url="http://localhost:9000/"))
    assert bucket.get_public_url(KEY) == f"http://localhost:9000/documents/{KEY}"


def test_public_url_for_aws():
    bucket = S3Bucket.from_settings(make_settings(aws_s3_region="eu-west-1"))
    assert bucket.get_public_url(KEY) == f"https://documents.s3.eu-west-1.amazonaws.com/{KEY}"
