from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from common.permissions import IsRideMember
from services import ride_management
from .serializers import RideDetailSerializer, RatingCreateSerializer, RatingSerializer


class RideDetailView(APIView):
    """
    GET: Ride with creator, participants and rider expanded.
    Visible to anyone related to the ride, and to admins.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, ride_id: int):
        ride = ride_management.get_ride_detail(request.user, ride_id)
        return Response({"ride": RideDetailSerializer(ride, context={"request": request}).data})


class RateRideView(APIView):
    """
    POST: Rate another member of a completed ride.

    POST Body:
    {
        "ratee_id": 12,
        "rating": 5
    }
    """
    permission_classes = [IsAuthenticated, IsRideMember]

    def post(self, request, ride_id: int):
        serializer = RatingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        rating = ride_management.rate_ride(
            rater=request.user,
            ride_id=ride_id,
            ratee_id=serializer.validated_data["ratee_id"],
            score=serializer.validated_data["rating"],
        )

        return Response(
            {"message": "Rating saved", "rating": RatingSerializer(rating).data},
            status=status.HTTP_201_CREATED,
        )
