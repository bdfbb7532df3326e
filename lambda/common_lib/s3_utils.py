import logging
import os
import re
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

# Initialize S3 client
s3_client = boto3.client('s3')


def get_reports_bucket():
    return os.environ.get('REPORTS_BUCKET')


def get_cloudfront_domain():
    return os.environ.get('CLOUDFRONT_DOMAIN')


def sanitize_key_segment(name):
    """Lowercase, keep letters/digits/dashes; used for per-organization folders"""
    segment = re.sub(r'[^a-z0-9]+', '-', (name or '').lower()).strip('-')
    return segment or 'unknown'


def generate_invoice_key(organization_name, filename):
    return f"invoices/{sanitize_key_segment(organization_name)}/{filename}"


def generate_public_url(file_key, bucket, cloudfront_domain=None):
    """Generate public URL using CloudFront domain, falling back to the bucket URL"""
    domain = cloudfront_domain or get_cloudfront_domain()
    if not domain:
        logger.warning(f"CLOUDFRONT_DOMAIN not available, falling back to S3 URL for file: {file_key}")
        return f"https://{bucket}.s3.amazonaws.com/{file_key}"

    # Ensure domain doesn't have protocol prefix
    if domain.startswith('http://') or domain.startswith('https://'):
        domain = domain.split('://', 1)[1]

    return f"https://{domain}/{file_key}"


def upload_invoice_pdf(rendered, organization_name):
    """
    Store a rendered PDF under invoices/{organization}/{filename}

    Args:
        rendered (RenderedDocument): Output of the PDF generator
        organization_name (str): Used for the folder name

    Returns:
        str or None: Public URL, or None when storage is not configured or failed
    """
    bucket = get_reports_bucket()
    if not bucket:
        logger.warning("REPORTS_BUCKET environment variable not set - PDF not stored")
        return None

    s3_key = generate_invoice_key(organization_name, rendered.filename)
    try:
        s3_client.put_object(
            Bucket=bucket,
            Key=s3_key,
            Body=rendered.pdf_bytes,
            ContentType='application/pdf',
            Metadata={
                'generated_at': datetime.now(timezone.utc).isoformat(),
                'invoice_number': rendered.invoice_number or '',
                'page_count': str(rendered.page_count),
            }
        )
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error uploading PDF to S3 ({bucket}/{s3_key}): {str(e)}")
        return None

    file_url = generate_public_url(s3_key, bucket)
    logger.info(f"PDF stored at {file_url}")
    return file_url
