"""
DRF views for stories app.

Endpoints:
    GET  /api/v1/stories/children/                    - Child profiles
    POST /api/v1/stories/children/                    - Add a child
    GET  /api/v1/stories/children/{id}/stories/       - A child's stories (paginated)
    POST /api/v1/stories/children/{id}/stories/       - Request a story
    GET  /api/v1/stories/{id}/                        - Story detail
    POST /api/v1/stories/{id}/audio/                  - Request narration
    GET  /api/v1/stories/{id}/audio/cost/             - Narration price
    POST /api/v1/stories/{id}/regenerate/             - Re-render the cover

Domain errors (ChildNotFound, StoryNotFound, InsufficientBalance, ...) are
rendered by core.views.api_exception_handler.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from stories.audio import request_story_audio
from stories.models import AudioStatus
from stories.pricing import AUDIO_STAR_PRICE, audio_cost
from stories.serializers import (
    AudioCostSerializer,
    AudioQueuedSerializer,
    AudioRequestSerializer,
    AudioStateSerializer,
    ChildSerializer,
    JobQueuedSerializer,
    StoryCreatedSerializer,
    StoryCreateSerializer,
    StoryListSerializer,
    StorySerializer,
)
from stories.services import ChildService, StoryService


class StoryPagination(PageNumberPagination):
    """
    Page-number pagination for a child's stories.

    Query parameters:
        page: 1-based page number
        limit: Stories per page (default 10, max 50)
    """

    page_size = 10
    page_size_query_param = "limit"
    max_page_size = 50


class ChildListView(APIView):
    """GET|POST /api/v1/stories/children/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_children",
        summary="List children",
        responses={200: ChildSerializer(many=True)},
        tags=["Stories"],
    )
    def get(self, request):
        return Response(ChildSerializer(ChildService.list_children(request.user), many=True).data)

    @extend_schema(
        operation_id="create_child",
        summary="Add child",
        request=ChildSerializer,
        responses={201: ChildSerializer},
        tags=["Stories"],
    )
    def post(self, request):
        serializer = ChildSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        child = ChildService.create_child(request.user, **serializer.validated_data)
        return Response(ChildSerializer(child).data, status=status.HTTP_201_CREATED)


class ChildStoriesView(APIView):
    """
    A child's stories, and new story requests.

    POST /api/v1/stories/children/{id}/stories/

    Request body:
        {"mood": "nyugodt", "length": "short", "theme": "erdő", "lesson": ""}

    Returns 201 with the story id and job id; the story is generated in
    the background. 402 when the credit balance is too low.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_child_stories",
        summary="List a child's stories",
        responses={
            200: StoryListSerializer(many=True),
            404: OpenApiResponse(description="Child not found"),
        },
        tags=["Stories"],
    )
    def get(self, request, child_id):
        queryset = StoryService.list_stories(request.user, child_id)
        paginator = StoryPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(StoryListSerializer(page, many=True).data)

    @extend_schema(
        operation_id="create_story",
        summary="Request a story",
        request=StoryCreateSerializer,
        responses={
            201: StoryCreatedSerializer,
            402: OpenApiResponse(description="Insufficient credits"),
            404: OpenApiResponse(description="Child not found"),
        },
        tags=["Stories"],
    )
    def post(self, request, child_id):
        serializer = StoryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        story, job_id = StoryService.create_story(
            request.user,
            child_id,
            mood=data["mood"],
            length=data["length"],
            theme=data["theme"],
            lesson=data.get("lesson", ""),
        )
        body = StoryCreatedSerializer(
            {
                "id": story.pk,
                "job_id": job_id,
                "status": story.status,
                "credit_cost": story.credit_cost,
            }
        )
        return Response(body.data, status=status.HTTP_201_CREATED)


class StoryDetailView(APIView):
    """GET /api/v1/stories/{id}/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_story",
        summary="Get story",
        responses={200: StorySerializer, 404: OpenApiResponse(description="Story not found")},
        tags=["Stories"],
    )
    def get(self, request, story_id):
        return Response(StorySerializer(StoryService.get_story(request.user, story_id)).data)


class StoryAudioView(APIView):
    """
    Request narration of a story.

    POST /api/v1/stories/{id}/audio/

    Request body:
        {"force": false, "payment_method": "audioStar"}

    payment_method is "audioStar", "credits", or omitted to use an audio
    star when the user has one. Returns 202 with a job id when narration
    was queued, or 200 with the current state when it is already queued,
    running or ready.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="request_story_audio",
        summary="Request narration",
        request=AudioRequestSerializer,
        responses={
            200: AudioStateSerializer,
            202: AudioQueuedSerializer,
            400: OpenApiResponse(description="Story has no text yet"),
            402: OpenApiResponse(description="Insufficient balance"),
            404: OpenApiResponse(description="Story not found"),
        },
        tags=["Stories"],
    )
    def post(self, request, story_id):
        serializer = AudioRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = request_story_audio(
            request.user,
            story_id,
            force=serializer.validated_data["force"],
            payment_method=serializer.validated_data.get("payment_method"),
        )
        if not result.queued:
            body = AudioStateSerializer(
                {
                    "story_id": result.story.pk,
                    "audio_status": result.story.audio_status,
                    "audio_url": result.story.audio_url,
                }
            )
            return Response(body.data)

        body = AudioQueuedSerializer(
            {
                "job_id": result.job_id,
                "story_id": result.story.pk,
                "audio_status": AudioStatus.QUEUED,
                "payment_kind": result.kind,
                "amount": result.amount,
            }
        )
        return Response(body.data, status=status.HTTP_202_ACCEPTED)


class StoryAudioCostView(APIView):
    """GET /api/v1/stories/{id}/audio/cost/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_story_audio_cost",
        summary="Get narration price",
        responses={200: AudioCostSerializer, 404: OpenApiResponse(description="Story not found")},
        tags=["Stories"],
    )
    def get(self, request, story_id):
        story = StoryService.get_story(request.user, story_id)
        body = AudioCostSerializer(
            {
                "cost": audio_cost(story.length),
                "audio_star_cost": AUDIO_STAR_PRICE,
                "has_audio": story.audio_status == AudioStatus.READY and bool(story.audio_url),
                "audio_status": story.audio_status,
            }
        )
        return Response(body.data)


class StoryRegenerateView(APIView):
    """
    Queue a forced cover render for a ready story.

    POST /api/v1/stories/{id}/regenerate/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="regenerate_story_cover",
        summary="Regenerate cover",
        request=None,
        responses={
            202: JobQueuedSerializer,
            400: OpenApiResponse(description="Story is not ready"),
            404: OpenApiResponse(description="Story not found"),
        },
        tags=["Stories"],
    )
    def post(self, request, story_id):
        job_id = StoryService.regenerate_cover(request.user, story_id)
        body = JobQueuedSerializer({"job_id": job_id, "story_id": story_id})
        return Response(body.data, status=status.HTTP_202_ACCEPTED)
