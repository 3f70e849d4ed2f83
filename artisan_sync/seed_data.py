# artisan_sync/seed_data.py
"""
Static sample collections.

Used twice: written to an empty store on first start, and served as the
read model whenever the live store is unreachable (degraded mode) or a
global collection comes back empty.
"""

import logging
from typing import List

from artisan_sync.entities import Artisan, CompletedProject, Product, Project, Testimonial, Volunteer
from artisan_sync.google_helpers import (
    COLLECTION_PRODUCTS,
    COLLECTION_PROJECTS,
    COLLECTION_USERS,
)


logger = logging.getLogger("artisan_sync")


INITIAL_ARTISANS: List[Artisan] = [
    Artisan(
        id="artisan_1",
        name="Ravi Kumar",
        avatar="https://i.pravatar.cc/150?u=artisan_1",
        profileComplete=True,
        craft="Blue Pottery",
        location="Jaipur, Rajasthan",
        bio="Third-generation potter keeping the cobalt glaze tradition alive.",
    ),
    Artisan(
        id="artisan_2",
        name="Meera Devi",
        avatar="https://i.pravatar.cc/150?u=artisan_2",
        profileComplete=True,
        craft="Madhubani Painting",
        location="Madhubani, Bihar",
        bio="Paints village folklore with natural pigments on handmade paper.",
    ),
    Artisan(
        id="artisan_3",
        name="Abdul Rashid",
        avatar="https://i.pravatar.cc/150?u=artisan_3",
        profileComplete=True,
        craft="Pashmina Weaving",
        location="Srinagar, Kashmir",
        bio="Hand-loom weaver of fine pashmina shawls.",
    ),
]

INITIAL_VOLUNTEERS: List[Volunteer] = [
    Volunteer(
        id="volunteer_1",
        name="Ananya Sharma",
        avatar="https://i.pravatar.cc/150?u=volunteer_1",
        profileComplete=True,
        skills=["Photography", "Social Media"],
        projectsCompleted=1,
        completedProjects=[
            CompletedProject(
                id="seed_collab_1",
                projectName="Product Catalogue Shoot",
                artisanName="Ravi Kumar",
                artisanAvatar="https://i.pravatar.cc/150?u=artisan_1",
                certificateText="Awarded for an outstanding product photography campaign.",
                skills=["Photography"],
                issuedDate="2024-03-12T00:00:00+00:00",
            )
        ],
        testimonials=[
            Testimonial(
                quote="Ananya made our pottery look as good online as it does in the kiln.",
                artisanName="Ravi Kumar",
                artisanAvatar="https://i.pravatar.cc/150?u=artisan_1",
            )
        ],
    ),
    Volunteer(
        id="volunteer_2",
        name="Karan Mehta",
        avatar="https://i.pravatar.cc/150?u=volunteer_2",
        profileComplete=True,
        skills=["Web Development", "SEO"],
    ),
]

INITIAL_PRODUCTS: List[Product] = [
    Product(
        id="1",
        name="Cobalt Blue Vase",
        artisanId="artisan_1",
        price=800,
        image="https://picsum.photos/seed/vase/400/400",
        description="Hand-thrown quartz vase with traditional floral motifs.",
        category="Pottery",
        dateAdded="2024-01-15T00:00:00+00:00",
    ),
    Product(
        id="2",
        name="Fish of the Ganga",
        artisanId="artisan_2",
        price=1500,
        image="https://picsum.photos/seed/madhubani/400/400",
        description="Madhubani painting in natural pigments.",
        category="Painting",
        dateAdded="2024-02-01T00:00:00+00:00",
    ),
    Product(
        id="3",
        name="Pashmina Shawl",
        artisanId="artisan_3",
        price=6500,
        image="https://picsum.photos/seed/shawl/400/400",
        description="Hand-woven shawl with sozni embroidery.",
        category="Textiles",
        dateAdded="2024-02-20T00:00:00+00:00",
    ),
]

INITIAL_PROJECTS: List[Project] = [
    Project(
        id="1",
        title="Online Store Setup",
        description="Help set up an online storefront for blue pottery.",
        skillsNeeded=["Web Development", "Photography"],
        postedBy="Ravi Kumar",
        status="Open",
    ),
    Project(
        id="2",
        title="Festival Marketing Campaign",
        description="Plan a social media campaign for the Madhubani festival collection.",
        skillsNeeded=["Social Media", "Copywriting"],
        postedBy="Meera Devi",
        status="Open",
    ),
]


def copies(items: list) -> list:
    return [item.model_copy(deep=True) for item in items]


def seed_database(store) -> bool:
    """
    Write the sample collections in one batch when `users` is empty.
    Returns True when a seed was written.
    """
    try:
        if store.query(COLLECTION_USERS):
            logger.info("Database already contains data. Skipping seed.")
            return False

        logger.info("Database is empty. Seeding initial data...")
        batch = store.batch()
        for user in INITIAL_ARTISANS + INITIAL_VOLUNTEERS:
            batch.set(COLLECTION_USERS, user.id, user.to_doc())
        for product in INITIAL_PRODUCTS:
            batch.set(COLLECTION_PRODUCTS, product.id, product.to_doc())
        for project in INITIAL_PROJECTS:
            batch.set(COLLECTION_PROJECTS, project.id, project.to_doc())
        batch.commit()
        logger.info("Initial data seeded successfully.")
        return True
    except Exception as e:
        logger.error(f"Error seeding database: {e}")
        return False
