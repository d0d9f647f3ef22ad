"""
URL configuration for the stories app.

Routes:
    - GET|POST /children/                    - Child profiles
    - GET|POST /children/<id>/stories/       - A child's stories / new story
    - GET  /<id>/                            - Story detail
    - POST /<id>/audio/                      - Narration request
    - GET  /<id>/audio/cost/                 - Narration price
    - POST /<id>/regenerate/                 - Forced cover render

All routes are prefixed with /api/v1/stories/ when included in the main URLconf.
"""

from django.urls import path

from stories import views

app_name = "stories"

urlpatterns = [
    path("children/", views.ChildListView.as_view(), name="child-list"),
    path(
        "children/<uuid:child_id>/stories/",
        views.ChildStoriesView.as_view(),
        name="child-stories",
    ),
    path("<uuid:story_id>/", views.StoryDetailView.as_view(), name="story-detail"),
    path("<uuid:story_id>/audio/", views.StoryAudioView.as_view(), name="story-audio"),
    path(
        "<uuid:story_id>/audio/cost/",
        views.StoryAudioCostView.as_view(),
        name="story-audio-cost",
    ),
    path(
        "<uuid:story_id>/regenerate/",
        views.StoryRegenerateView.as_view(),
        name="story-regenerate",
    ),
]
