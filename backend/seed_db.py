"""Dev DB setup: create tables and seed a teacher, a student and some progress."""
from datetime import date, timedelta

from app.db.session import Base, get_engine, get_session_factory
from app.db.models import (
    Assignment,
    Lesson,
    ProgressLog,
    RoleEnum,
    Topic,
    User,
)

# 1. Create all tables
engine = get_engine()
Base.metadata.create_all(bind=engine)
print("✅ All tables created")

session_factory = get_session_factory()
with session_factory() as db:
    # 2. Demo teacher
    teacher = db.query(User).filter(User.username == "teacher.demo").first()
    if not teacher:
        teacher = User(username="teacher.demo", full_name="Demo Teacher", role=RoleEnum.TEACHER)
        db.add(teacher)
        db.commit()
        db.refresh(teacher)
        print("✅ Created teacher: teacher.demo")
    else:
        print("  Teacher already exists")

    # 3. Demo student belonging to the teacher
    student = db.query(User).filter(User.username == "student.demo").first()
    if not student:
        student = User(
            username="student.demo",
            full_name="Demo Student",
            role=RoleEnum.STUDENT,
            teacher_id=teacher.id,
        )
        db.add(student)
        db.commit()
        db.refresh(student)
        print("✅ Created student: student.demo")
    else:
        print("  Student already exists")

    # 4. Global lesson with two topics
    lesson = db.query(Lesson).filter(Lesson.name == "Mathematics", Lesson.teacher_id.is_(None)).first()
    if not lesson:
        lesson = Lesson(name="Mathematics")
        lesson.topics = [Topic(name="Fractions"), Topic(name="Geometry")]
        db.add(lesson)
        db.commit()
        db.refresh(lesson)
        print(f"✅ Created global lesson Mathematics (id={lesson.id})")
    else:
        print("  Mathematics lesson already exists")

    # 5. One assignment per topic with a week of logs on the first
    if not db.query(Assignment).filter(Assignment.student_id == student.id).first():
        today = date.today()
        assignments = [
            Assignment(
                student_id=student.id,
                topic_id=topic.id,
                question_count=500,
                daily_target=50,
                start_date=today - timedelta(days=14),
                end_date=today + timedelta(days=14),
            )
            for topic in lesson.topics
        ]
        db.add_all(assignments)
        db.flush()
        for offset in range(7):
            db.add(
                ProgressLog(
                    student_id=student.id,
                    assignment_id=assignments[0].id,
                    log_date=today - timedelta(days=offset),
                    right_count=35,
                    wrong_count=10,
                    empty_count=5,
                )
            )
        db.commit()
        print("✅ Created assignments and a week of progress logs")
    else:
        print("  Assignments already exist")

    print("\n🎉 Database is ready to use!")
    print(f"   Teacher id: {teacher.id}")
    print(f"   Student id: {student.id}")
