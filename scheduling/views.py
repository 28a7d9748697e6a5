"""Views for the recurring schedule API."""

from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date

from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from .exceptions import (
    InvalidPattern,
    NotARecurringTemplate,
    PersistenceFailure,
    TemplateNotFound,
)
from .models import ScheduledEvent
from .serializers import (
    DateRangeQuerySerializer,
    ExcludedDateSerializer,
    GenerateRequestSerializer,
    GenerationResultSerializer,
    InstanceReadSerializer,
    InstanceUpdateSerializer,
    TemplateCreateSerializer,
    TemplateReadSerializer,
    TemplateUpdateSerializer,
)
from . import services
from .types import PAYLOAD_FIELDS, InstanceUpdateData, TemplateUpdateData


class GenerationConflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Generated instances could not be stored; retry the request.'
    default_code = 'generation_conflict'


def _raise_api_error(exc):
    """Translate a service-layer error into a DRF exception."""
    if isinstance(exc, TemplateNotFound):
        raise NotFound(str(exc))
    if isinstance(exc, PersistenceFailure):
        raise GenerationConflict(str(exc))
    raise ValidationError({'detail': str(exc)})


def _get_template(pk):
    return get_object_or_404(ScheduledEvent.objects.templates(), pk=pk)


def _get_instance(pk):
    return get_object_or_404(ScheduledEvent.objects.instances(), pk=pk)


class TemplateListCreateView(APIView):
    """
    List all recurring templates or create a new one.

    GET /api/templates/ - List all templates
    POST /api/templates/ - Create a new template
    """

    def get(self, request):
        """List all recurring templates."""
        templates = ScheduledEvent.objects.templates()
        serializer = TemplateReadSerializer(templates, many=True)
        return Response(serializer.data)

    def post(self, request):
        """Create a new template with optional instance generation."""
        serializer = TemplateCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        try:
            template, instances_count = services.create_template(
                title=data['title'],
                start_time=data['start_time'],
                end_time=data['end_time'],
                recurrence=data['recurrence'],
                description=data['description'],
                category=data['category'],
                location=data['location'],
                resource=data['resource'],
                room=data['room'],
                capacity=data['capacity'],
                waitlist_capacity=data['waitlist_capacity'],
                generate_now=data['generate_instances'],
                horizon_weeks=data['horizon_weeks']
            )
        except (ValueError, PersistenceFailure) as exc:
            _raise_api_error(exc)

        response_serializer = TemplateReadSerializer(template)
        return Response({
            'template': response_serializer.data,
            'instances_created': instances_count
        }, status=status.HTTP_201_CREATED)


class TemplateDetailView(APIView):
    """
    Retrieve, update, or deactivate a recurring template.

    GET /api/templates/{id}/ - Retrieve template
    PATCH /api/templates/{id}/ - Update template
    DELETE /api/templates/{id}/ - Deactivate template
    """

    def get(self, request, pk):
        """Retrieve a template."""
        template = _get_template(pk)
        serializer = TemplateReadSerializer(template)
        return Response(serializer.data)

    def patch(self, request, pk):
        """Update a template."""
        template = _get_template(pk)
        serializer = TemplateUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        update_data = TemplateUpdateData(
            start_time=data.get('start_time'),
            end_time=data.get('end_time'),
            recurrence=data.get('recurrence'),
            is_active=data.get('is_active'),
            **{name: data.get(name) for name in PAYLOAD_FIELDS}
        )
        try:
            updated_template = services.update_template(
                template=template,
                update_data=update_data,
                update_future_instances=data['update_future_instances']
            )
        except ValueError as exc:
            _raise_api_error(exc)

        response_serializer = TemplateReadSerializer(updated_template)
        return Response(response_serializer.data)

    def delete(self, request, pk):
        """Deactivate a template; its instances are kept."""
        template = _get_template(pk)
        services.deactivate_template(template)

        return Response({
            'message': f'Template "{template.title}" has been deactivated.'
        }, status=status.HTTP_200_OK)


class TemplateGenerateView(APIView):
    """
    Generate instances of a template.

    POST /api/templates/{id}/generate/
    """

    def post(self, request, pk):
        """Run a generation for the template."""
        serializer = GenerateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = services.generate_instances(
                pk,
                serializer.validated_data['horizon_weeks']
            )
        except (TemplateNotFound, NotARecurringTemplate, InvalidPattern, PersistenceFailure) as exc:
            _raise_api_error(exc)

        response_serializer = GenerationResultSerializer(result.as_dict())
        return Response(response_serializer.data, status=status.HTTP_200_OK)


class TemplateExclusionListView(APIView):
    """
    Exclude a date from a template.

    POST /api/templates/{id}/exclusions/
    """

    def post(self, request, pk):
        """Add an excluded date and cancel the instance on it."""
        template = _get_template(pk)
        serializer = ExcludedDateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        template, cancelled = services.add_exclusion(
            template,
            serializer.validated_data['date'],
            serializer.validated_data['reason']
        )

        return Response({
            'template': TemplateReadSerializer(template).data,
            'instances_cancelled': cancelled
        }, status=status.HTTP_201_CREATED)


class TemplateExclusionDetailView(APIView):
    """
    Remove an excluded date from a template.

    DELETE /api/templates/{id}/exclusions/{date}/
    """

    def delete(self, request, pk, excluded_date):
        """Remove an excluded date."""
        template = _get_template(pk)
        try:
            parsed = parse_date(excluded_date)
        except ValueError:
            parsed = None
        if parsed is None:
            raise ValidationError({'date': 'Expected a date in YYYY-MM-DD format.'})

        try:
            template = services.remove_exclusion(template, parsed)
        except ValueError as exc:
            raise NotFound(str(exc))

        return Response(TemplateReadSerializer(template).data)


class InstanceListView(APIView):
    """
    List concrete events within a date range.

    GET /api/instances/?start=X&end=Y&status=S&template=T
    """

    def get(self, request):
        """List events within a date range."""
        query_serializer = DateRangeQuerySerializer(data=request.query_params)
        query_serializer.is_valid(raise_exception=True)

        data = query_serializer.validated_data
        instances = services.get_instances_in_range(
            data['start'],
            data['end'],
            status=data.get('status'),
            template_id=data.get('template')
        )

        serializer = InstanceReadSerializer(instances, many=True)
        return Response(serializer.data)


class InstanceDetailView(APIView):
    """
    Retrieve, update, or cancel a concrete event.

    GET /api/instances/{id}/ - Retrieve event
    PATCH /api/instances/{id}/ - Update event
    DELETE /api/instances/{id}/ - Cancel event
    """

    def get(self, request, pk):
        """Retrieve an event."""
        instance = _get_instance(pk)
        serializer = InstanceReadSerializer(instance)
        return Response(serializer.data)

    def patch(self, request, pk):
        """Update an event."""
        instance = _get_instance(pk)
        serializer = InstanceUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        update_data = InstanceUpdateData(**serializer.validated_data)
        try:
            updated_instance = services.update_instance(
                instance=instance,
                update_data=update_data
            )
        except ValueError as exc:
            _raise_api_error(exc)

        response_serializer = InstanceReadSerializer(updated_instance)
        return Response(response_serializer.data)

    def delete(self, request, pk):
        """Cancel an event."""
        instance = _get_instance(pk)

        try:
            services.cancel_instance(instance)
        except ValueError as exc:
            _raise_api_error(exc)

        return Response({
            'message': f'Event "{instance.title}" on {instance.start_time.date()} has been cancelled.'
        }, status=status.HTTP_200_OK)


class InstanceCompleteView(APIView):
    """
    Mark a concrete event as completed.

    POST /api/instances/{id}/complete/
    """

    def post(self, request, pk):
        """Mark event as completed."""
        instance = _get_instance(pk)

        try:
            services.complete_instance(instance)
        except ValueError as exc:
            _raise_api_error(exc)

        return Response({
            'message': f'Event "{instance.title}" has been marked as completed.'
        }, status=status.HTTP_200_OK)
